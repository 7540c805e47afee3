"""
Atomic Ledger Transactions

DESIGN DECISION: Every balance-affecting action runs through one primitive,
TransactionEngine.run_atomic(user_id, read_plan, write_plan).

1. The read plan is declared upfront: which accounts must exist, which may
   be missing, and which other documents to read
2. The engine performs every read first, then hands the results to the
   write plan
3. The write plan is a plain synchronous function; it cannot await, so it
   cannot read again after staging a write
4. The store commits everything or nothing, and re-runs the whole thing on
   an optimistic-concurrency conflict

A write plan must be free of side effects outside the context: the store may
call it more than once before a commit succeeds.
"""

import inspect
from decimal import Decimal
from typing import Any, Callable, Optional, TypeVar

import structlog
from pydantic import BaseModel, Field

from budget_ledger.models.ledger import Account
from budget_ledger.services.store import (
    AccountNotFoundError,
    DocumentSnapshot,
    DocumentStore,
    LedgerPaths,
    Transaction,
    TransactionOrderError,
)


T = TypeVar("T")

logger = structlog.get_logger(__name__)


class ReadPlan(BaseModel):
    """Everything a transaction reads, declared before it starts."""

    accounts: list[str] = Field(
        default_factory=list,
        description="Account ids that must exist"
    )
    optional_accounts: list[str] = Field(
        default_factory=list,
        description="Account ids that may already be deleted"
    )
    documents: dict[str, str] = Field(
        default_factory=dict,
        description="Other documents to read, by label -> path"
    )


class AtomicContext:
    """
    Read results plus the write side of one transaction attempt.

    Handed to a write plan. Balances staged through stage_balance are
    visible to later account() calls, so several adjustments of the same
    account in one transaction compose.
    """

    def __init__(
        self,
        txn: Transaction,
        paths: LedgerPaths,
        user_id: str,
        accounts: dict[str, DocumentSnapshot],
        documents: dict[str, DocumentSnapshot],
    ):
        self._txn = txn
        self.paths = paths
        self.user_id = user_id
        self._accounts = accounts
        self._documents = documents
        self._pending_balances: dict[str, Decimal] = {}

    def has_account(self, account_id: str) -> bool:
        """
        Whether a declared account exists.

        Raises:
            TransactionOrderError: If the account was not in the read plan
        """
        if account_id not in self._accounts:
            raise TransactionOrderError(
                f"Account {account_id} was not declared in the read plan"
            )
        return self._accounts[account_id].exists

    def account(self, account_id: str) -> Account:
        """
        Account as of this transaction, including staged balance changes.

        Raises:
            TransactionOrderError: If the account was not in the read plan
            AccountNotFoundError: If the account does not exist
        """
        if account_id not in self._accounts:
            raise TransactionOrderError(
                f"Account {account_id} was not declared in the read plan"
            )
        snapshot = self._accounts[account_id]
        if not snapshot.exists:
            raise AccountNotFoundError(account_id)
        account = Account.from_document(account_id, snapshot.data)
        if account_id in self._pending_balances:
            account.balance = self._pending_balances[account_id]
        return account

    def document(self, label: str) -> DocumentSnapshot:
        if label not in self._documents:
            raise TransactionOrderError(
                f"Document {label!r} was not declared in the read plan"
            )
        return self._documents[label]

    def stage_balance(self, account_id: str, balance: Decimal) -> None:
        self._pending_balances[account_id] = balance
        self._txn.update(
            self.paths.account(self.user_id, account_id),
            {"balance": str(balance)},
        )

    # Plain writes

    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        self._txn.set(path, data, merge=merge)

    def update(self, path: str, fields: dict[str, Any]) -> None:
        self._txn.update(path, fields)

    def create(self, collection_path: str, data: dict[str, Any]) -> str:
        return self._txn.create(collection_path, data)

    def delete(self, path: str) -> None:
        self._txn.delete(path)


class TransactionEngine:
    """Runs read-all-then-write-all transactions against a DocumentStore."""

    def __init__(
        self,
        store: DocumentStore,
        paths: Optional[LedgerPaths] = None,
    ):
        self._store = store
        self._paths = paths or LedgerPaths()

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def paths(self) -> LedgerPaths:
        return self._paths

    async def run_atomic(
        self,
        user_id: str,
        read_plan: ReadPlan,
        write_plan: Callable[[AtomicContext], T],
    ) -> T:
        """
        Run one atomic read-then-write operation.

        Args:
            user_id: Owner of every document touched
            read_plan: Documents to read before any write
            write_plan: Synchronous function staging the writes; its return
                        value is returned from the committed attempt

        Returns:
            Whatever write_plan returned

        Raises:
            AccountNotFoundError: A required account is missing (nothing applied)
            TransactionOrderError: write_plan is async or used an undeclared read
            TransactionConflictError: The store's retry budget ran out
        """

        async def body(txn: Transaction) -> T:
            accounts: dict[str, DocumentSnapshot] = {}
            for account_id in [*read_plan.accounts, *read_plan.optional_accounts]:
                if account_id not in accounts:
                    accounts[account_id] = await txn.get(
                        self._paths.account(user_id, account_id)
                    )

            documents: dict[str, DocumentSnapshot] = {}
            for label, path in read_plan.documents.items():
                documents[label] = await txn.get(path)

            for account_id in read_plan.accounts:
                if not accounts[account_id].exists:
                    raise AccountNotFoundError(account_id)

            ctx = AtomicContext(txn, self._paths, user_id, accounts, documents)
            result = write_plan(ctx)
            if inspect.isawaitable(result):
                if inspect.iscoroutine(result):
                    result.close()
                raise TransactionOrderError(
                    "Write plans must be synchronous; all reads belong in the read plan"
                )
            return result

        logger.debug(
            "atomic_transaction_started",
            user_id=user_id,
            accounts=read_plan.accounts,
            optional_accounts=read_plan.optional_accounts,
            documents=sorted(read_plan.documents),
        )
        return await self._store.run_transaction(body)
