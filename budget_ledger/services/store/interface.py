"""
Abstract Document Store Interface

DESIGN DECISION: We define an abstract interface for the document store.
This allows us to:
1. Keep ledger logic independent of any particular database
2. Use the in-memory store for tests and local runs
3. Back the ledger with any store offering optimistic multi-document
   transactions

Paths are slash-separated. Document paths have an even number of segments,
collection paths an odd number ("users/u1/bank_accounts" is a collection,
"users/u1/bank_accounts/a1" a document).
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar, Union

from pydantic import BaseModel

from budget_ledger.errors import LedgerError


T = TypeVar("T")


def is_valid_segment(segment: Any) -> bool:
    """A single path segment: a non-empty string without slashes."""
    return isinstance(segment, str) and bool(segment) and "/" not in segment


def join_path(base: str, *segments: str) -> str:
    """
    Append segments to a path.

    base may already hold several segments (a collection path); every
    appended segment must be a single valid segment.

    Raises:
        ValueError: If base is malformed or a segment is empty or has a slash
    """
    if not base or base.startswith("/") or base.endswith("/") or "//" in base:
        raise ValueError(f"Invalid base path: {base!r}")
    for segment in segments:
        if not is_valid_segment(segment):
            raise ValueError(f"Invalid path segment: {segment!r}")
    return "/".join((base, *segments))


def is_collection_path(path: str) -> bool:
    return len(path.split("/")) % 2 == 1


def parent_path(path: str) -> str:
    return path.rsplit("/", 1)[0]


def document_id(path: str) -> str:
    return path.rsplit("/", 1)[-1]


class DocumentSnapshot(BaseModel):
    """
    A document as read from the store.

    data is None when the document does not exist. version identifies the
    committed write the snapshot observed; transactions use it to detect
    conflicting writes.
    """

    path: str
    data: Optional[dict[str, Any]] = None
    version: int = 0

    @property
    def id(self) -> str:
        return document_id(self.path)

    @property
    def exists(self) -> bool:
        return self.data is not None


class Transaction(ABC):
    """
    One optimistic multi-document transaction.

    All reads must happen before any write. Writes are buffered and applied
    together at commit; a read issued after a write is a programming error
    and raises TransactionOrderError.
    """

    @abstractmethod
    async def get(self, path: str) -> DocumentSnapshot:
        """
        Read a document inside the transaction.

        Raises:
            TransactionOrderError: If a write was already staged
        """
        pass

    @abstractmethod
    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        """Stage a full write (or a shallow merge when merge=True)."""
        pass

    @abstractmethod
    def update(self, path: str, fields: dict[str, Any]) -> None:
        """
        Stage a partial update.

        The document must exist at commit time, otherwise the commit fails
        with NotFoundError.
        """
        pass

    @abstractmethod
    def create(self, collection_path: str, data: dict[str, Any]) -> str:
        """
        Stage a new document with a generated id.

        Returns:
            The generated document id
        """
        pass

    @abstractmethod
    def delete(self, path: str) -> None:
        """Stage a delete. Deleting a missing document is not an error."""
        pass


class DocumentStore(ABC):
    """
    Abstract interface for the ledger's document store.

    Any backend must implement these methods with the transaction semantics
    described on run_transaction.
    """

    @abstractmethod
    async def get(self, path: str) -> DocumentSnapshot:
        """
        Read a single document.

        Returns:
            A snapshot; snapshot.exists is False if there is no document
        """
        pass

    @abstractmethod
    async def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        """
        Write a document.

        Args:
            path: Document path
            data: Document fields
            merge: Shallow-merge into an existing document instead of
                   replacing it (creates the document if missing)
        """
        pass

    @abstractmethod
    async def add(self, collection_path: str, data: dict[str, Any]) -> str:
        """
        Add a document with a generated id.

        Returns:
            The generated document id
        """
        pass

    @abstractmethod
    async def update(self, path: str, fields: dict[str, Any]) -> None:
        """
        Update fields on an existing document.

        Raises:
            NotFoundError: If the document doesn't exist
        """
        pass

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """
        Delete a document. Sub-collections are left in place.

        Returns:
            True if a document was deleted
        """
        pass

    @abstractmethod
    async def list_documents(
        self,
        collection_path: str,
        order_by: Optional[str] = None,
    ) -> list[DocumentSnapshot]:
        """
        List the documents directly inside a collection.

        Args:
            collection_path: Collection to list
            order_by: Field to sort by (documents without it sort first);
                      defaults to document id order
        """
        pass

    @abstractmethod
    def subscribe(
        self,
        path: str,
    ) -> AsyncIterator[Union[DocumentSnapshot, list[DocumentSnapshot]]]:
        """
        Live stream of a document or collection.

        Yields the current state immediately, then again after every
        committed change to it. Collection paths yield lists of snapshots.
        """
        pass

    @abstractmethod
    async def run_transaction(
        self,
        fn: Callable[[Transaction], Awaitable[T]],
    ) -> T:
        """
        Run fn inside an optimistic transaction and commit its writes.

        Either every staged write commits or none does. When a document the
        transaction read changed before commit, fn is run again on a fresh
        transaction, up to the store's retry budget.

        Returns:
            Whatever fn returned on the attempt that committed

        Raises:
            TransactionConflictError: If the retry budget is exhausted
            TransactionOrderError: If fn read after writing (never retried)
            Any exception raised by fn (nothing is committed)
        """
        pass


class StorageError(LedgerError):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class AccountNotFoundError(NotFoundError):
    """A referenced account id does not resolve to a document."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class GoalNotFoundError(NotFoundError):
    """A referenced savings goal does not exist."""

    def __init__(self, goal_id: str):
        self.goal_id = goal_id
        super().__init__(f"Savings goal not found: {goal_id}")


class TransactionConflictError(StorageError):
    """Concurrent writes kept conflicting until the retry budget ran out."""

    def __init__(self, message: str, attempts: int = 0):
        self.attempts = attempts
        super().__init__(message)


class TransactionOrderError(StorageError):
    """A transaction read a document after staging a write."""
    pass
