"""Input validation package."""

from budget_ledger.validation.validator import (
    LedgerValidator,
    ValidationError,
    ValidationIssue,
)

__all__ = [
    "LedgerValidator",
    "ValidationError",
    "ValidationIssue",
]
