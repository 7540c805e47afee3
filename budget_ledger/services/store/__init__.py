"""
Document Store Package

Provides the abstract document store interface, the path layout, and an
in-memory implementation with optimistic transactions.
"""

from budget_ledger.services.store.interface import (
    AccountNotFoundError,
    DocumentSnapshot,
    DocumentStore,
    GoalNotFoundError,
    NotFoundError,
    StorageError,
    Transaction,
    TransactionConflictError,
    TransactionOrderError,
    document_id,
    is_collection_path,
    is_valid_segment,
    join_path,
    parent_path,
)
from budget_ledger.services.store.memory import (
    InMemoryDocumentStore,
    InMemoryTransaction,
)
from budget_ledger.services.store.paths import LedgerPaths

__all__ = [
    # Interfaces
    "DocumentSnapshot",
    "DocumentStore",
    "Transaction",
    # Exceptions
    "AccountNotFoundError",
    "GoalNotFoundError",
    "NotFoundError",
    "StorageError",
    "TransactionConflictError",
    "TransactionOrderError",
    # Paths
    "LedgerPaths",
    "document_id",
    "is_collection_path",
    "is_valid_segment",
    "join_path",
    "parent_path",
    # In-memory implementation
    "InMemoryDocumentStore",
    "InMemoryTransaction",
]
