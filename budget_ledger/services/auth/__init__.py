"""Auth collaborator package."""

from budget_ledger.services.auth.interface import (
    AuthError,
    AuthListener,
    AuthProvider,
)

__all__ = [
    "AuthError",
    "AuthListener",
    "AuthProvider",
]
