"""Services package."""

from budget_ledger.services.auth import (
    AuthError,
    AuthProvider,
)
from budget_ledger.services.store import (
    AccountNotFoundError,
    DocumentStore,
    GoalNotFoundError,
    InMemoryDocumentStore,
    LedgerPaths,
    NotFoundError,
    StorageError,
    TransactionConflictError,
    TransactionOrderError,
)

__all__ = [
    # Auth
    "AuthError",
    "AuthProvider",
    # Document store
    "AccountNotFoundError",
    "DocumentStore",
    "GoalNotFoundError",
    "InMemoryDocumentStore",
    "LedgerPaths",
    "NotFoundError",
    "StorageError",
    "TransactionConflictError",
    "TransactionOrderError",
]
