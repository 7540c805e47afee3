"""
Account Store

Bank account records and their balances. Balances move in two ways only:
1. adjust_balance, inside an atomic transaction run by the engine
2. set_balance, a direct manual correction the user asked for

Deleting an account does not touch ledger entries that reference it. Those
entries keep the dangling id; deleting such an entry later skips the
missing account instead of failing.
"""

from decimal import Decimal
from typing import Any, AsyncIterator, Optional, Union

from budget_ledger.activity import ActivityLogger
from budget_ledger.engine import AtomicContext
from budget_ledger.models.activity import ActivityEventBuilder
from budget_ledger.models.inputs import AccountInput
from budget_ledger.models.ledger import Account
from budget_ledger.services.store import (
    AccountNotFoundError,
    DocumentStore,
    LedgerPaths,
    NotFoundError,
)
from budget_ledger.validation import LedgerValidator


class AccountStore:
    """CRUD for accounts plus the in-transaction balance adjustment."""

    def __init__(
        self,
        store: DocumentStore,
        paths: Optional[LedgerPaths] = None,
        validator: Optional[LedgerValidator] = None,
        activity_logger: Optional[ActivityLogger] = None,
    ):
        self._store = store
        self._paths = paths or LedgerPaths()
        self._validator = validator or LedgerValidator()
        self._activity = activity_logger or ActivityLogger()

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def paths(self) -> LedgerPaths:
        return self._paths

    async def get(self, user_id: str, account_id: str) -> Account:
        """
        Raises:
            ValidationError: If account_id is malformed
            AccountNotFoundError: If there is no such account
        """
        account_id = self._validator.validate_id(account_id, "account_id")
        snapshot = await self._store.get(self._paths.account(user_id, account_id))
        if not snapshot.exists:
            raise AccountNotFoundError(account_id)
        return Account.from_document(snapshot.id, snapshot.data)

    async def list_accounts(self, user_id: str) -> list[Account]:
        snapshots = await self._store.list_documents(self._paths.accounts(user_id))
        return [Account.from_document(s.id, s.data) for s in snapshots]

    async def watch_accounts(self, user_id: str) -> AsyncIterator[list[Account]]:
        """Live list of the user's accounts, re-emitted on every change."""
        async for snapshots in self._store.subscribe(self._paths.accounts(user_id)):
            yield [Account.from_document(s.id, s.data) for s in snapshots]

    async def create(
        self,
        user_id: str,
        fields: Union[AccountInput, dict[str, Any]],
    ) -> Account:
        """
        Create an account with its opening balance.

        Raises:
            ValidationError: If bank name or nickname is missing
        """
        data = self._validator.validate_account(fields)
        account = Account(
            bank_name=data.bank_name,
            nickname=data.nickname,
            balance=data.balance,
        )
        account.id = await self._store.add(
            self._paths.accounts(user_id),
            account.to_document(),
        )
        self._activity.log(ActivityEventBuilder.account_created(
            user_id, account.id, account.nickname, account.balance,
        ))
        return account

    async def delete(self, user_id: str, account_id: str) -> bool:
        """
        Delete an account. Ledger entries referencing it are left as they are.

        Returns:
            True if an account was deleted
        """
        account_id = self._validator.validate_id(account_id, "account_id")
        deleted = await self._store.delete(self._paths.account(user_id, account_id))
        if deleted:
            self._activity.log(ActivityEventBuilder.account_deleted(user_id, account_id))
        return deleted

    async def set_balance(
        self,
        user_id: str,
        account_id: str,
        new_balance: Union[Decimal, str, int],
    ) -> Account:
        """
        Overwrite an account's balance (manual correction, no transaction).

        Raises:
            ValidationError: If new_balance is not a number
            AccountNotFoundError: If there is no such account
        """
        account_id = self._validator.validate_id(account_id, "account_id")
        balance = self._validator.validate_balance(new_balance)

        try:
            await self._store.update(
                self._paths.account(user_id, account_id),
                {"balance": str(balance)},
            )
        except NotFoundError:
            raise AccountNotFoundError(account_id) from None

        self._activity.log(ActivityEventBuilder.balance_set(user_id, account_id, balance))
        return await self.get(user_id, account_id)

    @staticmethod
    def adjust_balance(ctx: AtomicContext, account_id: str, delta: Decimal) -> Decimal:
        """
        Add delta to an account's balance inside an atomic transaction.

        The account must be in the transaction's read plan. Adjustments of
        the same account within one transaction compose.

        Returns:
            The new balance

        Raises:
            AccountNotFoundError: If the account does not exist (fails the
                                  whole transaction)
        """
        account = ctx.account(account_id)
        new_balance = account.balance + delta
        ctx.stage_balance(account_id, new_balance)
        return new_balance
