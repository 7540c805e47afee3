"""
In-Memory Document Store

Reference implementation of DocumentStore used by tests and local runs.

TRADEOFFS:
- Nothing survives the process (fine for tests, not for production)
- Commits are serialized by one asyncio.Lock; reads are not

Concurrency follows the optimistic model the ledger expects from any
backend: every read inside a transaction records the version it saw, and
commit fails if any of those versions moved. The transaction body then runs
again under a tenacity retry policy. Reads yield to the event loop so
interleaved transactions really do conflict.
"""

import asyncio
import copy
from collections import defaultdict
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar, Union
from uuid import uuid4

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from budget_ledger.config import StoreSettings, get_settings
from budget_ledger.services.store.interface import (
    DocumentSnapshot,
    DocumentStore,
    NotFoundError,
    Transaction,
    TransactionConflictError,
    TransactionOrderError,
    is_collection_path,
    join_path,
    parent_path,
)


T = TypeVar("T")

logger = structlog.get_logger(__name__)


class _CommitConflict(Exception):
    """A document read by the transaction changed before commit."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Document changed during transaction: {path}")


class _Write:
    __slots__ = ("kind", "path", "data", "merge")

    def __init__(self, kind: str, path: str, data: Optional[dict] = None, merge: bool = False):
        self.kind = kind
        self.path = path
        self.data = data
        self.merge = merge


class InMemoryTransaction(Transaction):
    """Buffers writes and remembers read versions until commit."""

    def __init__(self, store: "InMemoryDocumentStore"):
        self._store = store
        self._reads: dict[str, int] = {}
        self._writes: list[_Write] = []

    async def get(self, path: str) -> DocumentSnapshot:
        if self._writes:
            raise TransactionOrderError(
                f"Read of {path} after a write was staged; "
                "transactions must do all reads before any write"
            )
        snapshot = self._store._snapshot(path)
        self._reads[path] = snapshot.version
        # The round-trip: other transactions may commit before we resume.
        await asyncio.sleep(0)
        return snapshot

    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        self._writes.append(_Write("set", path, copy.deepcopy(data), merge))

    def update(self, path: str, fields: dict[str, Any]) -> None:
        self._writes.append(_Write("update", path, copy.deepcopy(fields)))

    def create(self, collection_path: str, data: dict[str, Any]) -> str:
        doc_id = self._store._new_id()
        self.set(join_path(collection_path, doc_id), data)
        return doc_id

    def delete(self, path: str) -> None:
        self._writes.append(_Write("delete", path))

    @property
    def reads(self) -> dict[str, int]:
        return dict(self._reads)

    @property
    def writes(self) -> list[_Write]:
        return list(self._writes)


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed document store with optimistic transactions.

    Every committed write stamps the touched paths with a new version from a
    store-wide clock. Deletes keep their version stamp, so a transaction that
    read "missing" still conflicts with a concurrent create.
    """

    def __init__(self, settings: Optional[StoreSettings] = None):
        self._settings = settings or get_settings().store
        self._documents: dict[str, dict[str, Any]] = {}
        self._versions: dict[str, int] = {}
        self._clock = 0
        self._commit_lock = asyncio.Lock()
        self._watchers: dict[str, list[asyncio.Queue]] = defaultdict(list)

    # -- internals ---------------------------------------------------------

    def _new_id(self) -> str:
        return uuid4().hex[:20]

    def _snapshot(self, path: str) -> DocumentSnapshot:
        data = self._documents.get(path)
        return DocumentSnapshot(
            path=path,
            data=copy.deepcopy(data) if data is not None else None,
            version=self._versions.get(path, 0),
        )

    def _children(self, collection_path: str) -> list[str]:
        return [
            path for path in self._documents
            if parent_path(path) == collection_path and path != collection_path
        ]

    def _current(self, path: str) -> Union[DocumentSnapshot, list[DocumentSnapshot]]:
        if is_collection_path(path):
            return [self._snapshot(p) for p in sorted(self._children(path))]
        return self._snapshot(path)

    def _apply(self, writes: list[_Write]) -> None:
        """
        Apply writes atomically. Caller holds the commit lock.

        Raises:
            NotFoundError: If an update targets a missing document
                           (nothing is applied)
        """
        staged: dict[str, Optional[dict[str, Any]]] = {}

        def current(path: str) -> Optional[dict[str, Any]]:
            if path in staged:
                return staged[path]
            return self._documents.get(path)

        for write in writes:
            existing = current(write.path)
            if write.kind == "delete":
                staged[write.path] = None
            elif write.kind == "update":
                if existing is None:
                    raise NotFoundError(f"Document not found: {write.path}")
                staged[write.path] = {**existing, **write.data}
            elif write.merge and existing is not None:
                staged[write.path] = {**existing, **write.data}
            else:
                staged[write.path] = dict(write.data)

        self._clock += 1
        for path, data in staged.items():
            if data is None:
                self._documents.pop(path, None)
            else:
                self._documents[path] = data
            self._versions[path] = self._clock

        self._notify(staged.keys())

    def _notify(self, paths) -> None:
        touched = set()
        for path in paths:
            touched.add(path)
            touched.add(parent_path(path))
        for path in touched:
            for queue in self._watchers.get(path, []):
                queue.put_nowait(None)

    async def _commit(self, txn: InMemoryTransaction) -> None:
        async with self._commit_lock:
            for path, version in txn.reads.items():
                if self._versions.get(path, 0) != version:
                    raise _CommitConflict(path)
            if txn.writes:
                self._apply(txn.writes)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "transaction_conflict_retry",
            attempt=retry_state.attempt_number,
            path=getattr(error, "path", None),
        )

    # -- DocumentStore -----------------------------------------------------

    async def get(self, path: str) -> DocumentSnapshot:
        await asyncio.sleep(0)
        return self._snapshot(path)

    async def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        async with self._commit_lock:
            self._apply([_Write("set", path, copy.deepcopy(data), merge)])

    async def add(self, collection_path: str, data: dict[str, Any]) -> str:
        doc_id = self._new_id()
        await self.set(join_path(collection_path, doc_id), data)
        return doc_id

    async def update(self, path: str, fields: dict[str, Any]) -> None:
        async with self._commit_lock:
            self._apply([_Write("update", path, copy.deepcopy(fields))])

    async def delete(self, path: str) -> bool:
        async with self._commit_lock:
            existed = path in self._documents
            self._apply([_Write("delete", path)])
        return existed

    async def list_documents(
        self,
        collection_path: str,
        order_by: Optional[str] = None,
    ) -> list[DocumentSnapshot]:
        await asyncio.sleep(0)
        snapshots = self._current(collection_path)
        if order_by:
            snapshots.sort(
                key=lambda s: (s.data.get(order_by) is not None, s.data.get(order_by) or 0)
            )
        return snapshots

    async def subscribe(
        self,
        path: str,
    ) -> AsyncIterator[Union[DocumentSnapshot, list[DocumentSnapshot]]]:
        queue: asyncio.Queue = asyncio.Queue()
        self._watchers[path].append(queue)
        try:
            yield self._current(path)
            while True:
                await queue.get()
                # Coalesce bursts of commits into one update.
                while not queue.empty():
                    queue.get_nowait()
                yield self._current(path)
        finally:
            self._watchers[path].remove(queue)

    async def run_transaction(
        self,
        fn: Callable[[Transaction], Awaitable[T]],
    ) -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.max_attempts),
            wait=wait_exponential(
                multiplier=self._settings.wait_multiplier,
                min=self._settings.wait_min,
                max=self._settings.wait_max,
            ),
            retry=retry_if_exception_type(_CommitConflict),
            before_sleep=self._log_retry,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    txn = InMemoryTransaction(self)
                    result = await fn(txn)
                    await self._commit(txn)
        except _CommitConflict as e:
            logger.error(
                "transaction_conflict_exhausted",
                attempts=self._settings.max_attempts,
                path=e.path,
            )
            raise TransactionConflictError(
                f"Transaction kept conflicting on {e.path} "
                f"after {self._settings.max_attempts} attempts",
                attempts=self._settings.max_attempts,
            ) from e
        return result
