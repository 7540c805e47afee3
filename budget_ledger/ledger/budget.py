"""
Budget Item Ledger

DESIGN DECISION: Adding or deleting a budget item is ONE atomic transaction
covering both the balance change and the item document:

ADD:
- Read the source account (and the destination, for transfers)
- Debit the source, credit the destination
- Create the item document

DELETE:
- Read the item and whatever accounts it touched (missing ones are skipped)
- Apply the inverse deltas
- Delete the item document

So an account is never debited without its matching item, and deleting an
item twice cannot reverse it twice.

The month budget document (income + rule) is created lazily by the first
write that needs it; reads of a month without one return the defaults.
"""

from typing import Any, AsyncIterator, Optional, Union

from budget_ledger.activity import ActivityLogger
from budget_ledger.config import LedgerSettings, get_settings
from budget_ledger.engine import AtomicContext, ReadPlan, TransactionEngine
from budget_ledger.ledger.accounts import AccountStore
from budget_ledger.ledger.summary import build_month_summary
from budget_ledger.models.activity import ActivityEventBuilder
from budget_ledger.models.inputs import BudgetItemInput
from budget_ledger.models.ledger import (
    BudgetCategory,
    BudgetItem,
    BudgetRule,
    MonthBudget,
)
from budget_ledger.models.reports import MonthSummary
from budget_ledger.services.store import NotFoundError
from budget_ledger.validation import LedgerValidator


class BudgetLedger:
    """Budget items and month budgets for one namespace."""

    def __init__(
        self,
        engine: TransactionEngine,
        validator: Optional[LedgerValidator] = None,
        activity_logger: Optional[ActivityLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._engine = engine
        self._store = engine.store
        self._paths = engine.paths
        self._validator = validator or LedgerValidator()
        self._activity = activity_logger or ActivityLogger()
        self._settings = settings or get_settings().ledger

    @property
    def engine(self) -> TransactionEngine:
        return self._engine

    # =========================================================================
    # BUDGET ITEMS
    # =========================================================================

    async def add_budget_item(
        self,
        user_id: str,
        month_key: str,
        data: Union[BudgetItemInput, dict[str, Any]],
        category: Union[BudgetCategory, str],
    ) -> BudgetItem:
        """
        Record a budget item and move its money in one transaction.

        Args:
            user_id: Owner of the ledger
            month_key: Month the item is filed under (YYYY-MM)
            data: name, amount > 0, date, account_id and optional to_account_id
            category: Budget category of the item

        Returns:
            The stored item, with its generated id

        Raises:
            ValidationError: Bad input (raised before any store call)
            AccountNotFoundError: An account does not exist (nothing applied)
            TransactionConflictError: Retries ran out (nothing applied)
        """
        month_key = self._validator.validate_month_key(month_key)
        fields = self._validator.validate_budget_item(data)
        category = self._validator.validate_category(category)

        item = BudgetItem(
            name=fields.name,
            amount=fields.amount,
            category=category,
            date=fields.date,
            account_id=fields.account_id,
            to_account_id=fields.to_account_id,
        )

        read_plan = ReadPlan(accounts=[item.account_id])
        if item.is_transfer:
            read_plan.accounts.append(item.to_account_id)

        items_path = self._paths.items(user_id, month_key)

        def write_plan(ctx: AtomicContext) -> str:
            AccountStore.adjust_balance(ctx, item.account_id, -item.amount)
            if item.is_transfer:
                AccountStore.adjust_balance(ctx, item.to_account_id, item.amount)
            return ctx.create(items_path, item.to_document())

        item.id = await self._engine.run_atomic(user_id, read_plan, write_plan)

        self._activity.log(ActivityEventBuilder.budget_item_added(user_id, month_key, item))
        return item

    async def delete_budget_item(
        self,
        user_id: str,
        month_key: str,
        item: Union[BudgetItem, str],
    ) -> BudgetItem:
        """
        Delete a budget item and reverse its balance changes.

        The reversal uses the stored item, not the caller's copy. Accounts
        deleted since the item was added are skipped.

        Returns:
            The item as it was stored

        Raises:
            ValidationError: If the item id is malformed
            NotFoundError: If the item no longer exists
            TransactionOrderError: If item is a copy naming other accounts than
                                   the stored item (nothing applied)
            TransactionConflictError: Retries ran out (nothing applied)
        """
        month_key = self._validator.validate_month_key(month_key)
        item_id = self._validator.validate_id(
            item if isinstance(item, str) else item.id,
            "item_id",
        )
        item_path = self._paths.item(user_id, month_key, item_id)

        # The caller's copy only decides which accounts to read; the stored
        # document decides what to reverse.
        hint = item if isinstance(item, BudgetItem) else await self._get_item(item_path)
        read_plan = ReadPlan(
            optional_accounts=[a for a in (hint.account_id, hint.to_account_id) if a],
            documents={"item": item_path},
        )

        def write_plan(ctx: AtomicContext) -> BudgetItem:
            snapshot = ctx.document("item")
            if not snapshot.exists:
                raise NotFoundError(f"Budget item not found: {item_id}")
            stored = BudgetItem.from_document(item_id, snapshot.data)

            if stored.account_id and ctx.has_account(stored.account_id):
                AccountStore.adjust_balance(ctx, stored.account_id, stored.amount)
            if stored.to_account_id and ctx.has_account(stored.to_account_id):
                AccountStore.adjust_balance(ctx, stored.to_account_id, -stored.amount)
            ctx.delete(item_path)
            return stored

        stored = await self._engine.run_atomic(user_id, read_plan, write_plan)

        self._activity.log(ActivityEventBuilder.budget_item_deleted(user_id, month_key, stored))
        return stored

    async def _get_item(self, item_path: str) -> BudgetItem:
        snapshot = await self._store.get(item_path)
        if not snapshot.exists:
            raise NotFoundError(f"Budget item not found: {snapshot.id}")
        return BudgetItem.from_document(snapshot.id, snapshot.data)

    async def list_items(self, user_id: str, month_key: str) -> list[BudgetItem]:
        """Items of a month, oldest date first."""
        month_key = self._validator.validate_month_key(month_key)
        snapshots = await self._store.list_documents(
            self._paths.items(user_id, month_key),
            order_by="date",
        )
        return [BudgetItem.from_document(s.id, s.data) for s in snapshots]

    async def watch_items(self, user_id: str, month_key: str) -> AsyncIterator[list[BudgetItem]]:
        month_key = self._validator.validate_month_key(month_key)
        async for snapshots in self._store.subscribe(self._paths.items(user_id, month_key)):
            items = [BudgetItem.from_document(s.id, s.data) for s in snapshots]
            yield sorted(items, key=lambda i: i.date)

    # =========================================================================
    # MONTH BUDGET
    # =========================================================================

    def _month_budget_from(self, data: Optional[dict[str, Any]]) -> MonthBudget:
        return MonthBudget.model_validate({
            "rule": self._settings.default_rule,
            **(data or {}),
        })

    async def get_month_budget(self, user_id: str, month_key: str) -> MonthBudget:
        """Income and rule of a month; defaults when none was ever set (nothing is written)."""
        month_key = self._validator.validate_month_key(month_key)
        snapshot = await self._store.get(self._paths.month_budget(user_id, month_key))
        return self._month_budget_from(snapshot.data)

    async def set_income(self, user_id: str, month_key: str, income: Any) -> MonthBudget:
        month_key = self._validator.validate_month_key(month_key)
        amount = self._validator.validate_income(income)
        return await self._update_month_budget(user_id, month_key, {"income": str(amount)})

    async def set_rule(
        self,
        user_id: str,
        month_key: str,
        rule: Union[BudgetRule, str],
    ) -> MonthBudget:
        month_key = self._validator.validate_month_key(month_key)
        parsed = self._validator.validate_rule(rule)
        return await self._update_month_budget(user_id, month_key, {"rule": parsed.value})

    async def _update_month_budget(
        self,
        user_id: str,
        month_key: str,
        fields: dict[str, Any],
    ) -> MonthBudget:
        path = self._paths.month_budget(user_id, month_key)

        def write_plan(ctx: AtomicContext) -> MonthBudget:
            current = self._month_budget_from(ctx.document("month").data)
            budget = MonthBudget.model_validate({**current.to_document(), **fields})
            ctx.set(path, budget.to_document())
            return budget

        budget = await self._engine.run_atomic(
            user_id,
            ReadPlan(documents={"month": path}),
            write_plan,
        )
        self._activity.log(ActivityEventBuilder.month_budget_updated(user_id, month_key, fields))
        return budget

    async def month_summary(self, user_id: str, month_key: str) -> MonthSummary:
        budget = await self.get_month_budget(user_id, month_key)
        items = await self.list_items(user_id, month_key)
        return build_month_summary(month_key, budget, items)
