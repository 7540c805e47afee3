"""
Recurring Bill Engine

Registry of subscription/bill templates plus the monthly posting run.

DESIGN DECISION: process_recurring_bills is idempotent and safe to call
whenever the active month changes:

1. Items are processed ONE AT A TIME, never concurrently, so items sharing
   an account do not fight over its balance
2. Each item posts in its own atomic transaction, which re-reads the item
   and re-checks last_processed_month; a duplicate run that loses the race
   conflicts, retries, sees the marker and does nothing
3. One item failing is logged and reported, never raised; the run moves
   on to the next item and the failed one is retried on the next run
"""

from datetime import date
from typing import Any, Optional, Union

import structlog

from budget_ledger.activity import ActivityLogger
from budget_ledger.config import LedgerSettings, get_settings
from budget_ledger.engine import AtomicContext, ReadPlan, TransactionEngine
from budget_ledger.ledger.accounts import AccountStore
from budget_ledger.models.activity import ActivityEventBuilder
from budget_ledger.models.inputs import RecurringItemInput
from budget_ledger.models.ledger import (
    BudgetItem,
    MonthBudget,
    RecurringItem,
    month_key_for,
    recurring_post_date,
)
from budget_ledger.models.reports import (
    RecurringFailure,
    RecurringRunReport,
    UpcomingBill,
)
from budget_ledger.validation import LedgerValidator


logger = structlog.get_logger(__name__)


class RecurringBillEngine:
    """Recurring item registry and the monthly auto-posting run."""

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
    # REGISTRY
    # =========================================================================

    async def create_recurring_item(
        self,
        user_id: str,
        data: Union[RecurringItemInput, dict[str, Any]],
    ) -> RecurringItem:
        """
        Register a recurring bill. It first posts on the next run.

        Raises:
            ValidationError: Missing name, non-positive amount or bad day
        """
        fields = self._validator.validate_recurring_item(data)
        item = RecurringItem(
            name=fields.name,
            amount=fields.amount,
            day_of_month=fields.day_of_month,
            category=fields.category,
            account_id=fields.account_id,
        )
        item.id = await self._store.add(
            self._paths.recurring_items(user_id),
            item.to_document(),
        )
        self._activity.log(ActivityEventBuilder.recurring_item_created(user_id, item))
        return item

    async def delete_recurring_item(self, user_id: str, recurring_id: str) -> bool:
        """Stop a recurring bill. Items it already posted stay in their months."""
        recurring_id = self._validator.validate_id(recurring_id, "recurring_id")
        deleted = await self._store.delete(self._paths.recurring_item(user_id, recurring_id))
        if deleted:
            self._activity.log(ActivityEventBuilder.recurring_item_deleted(user_id, recurring_id))
        return deleted

    async def list_recurring_items(self, user_id: str) -> list[RecurringItem]:
        """All recurring items, earliest day of month first."""
        snapshots = await self._store.list_documents(
            self._paths.recurring_items(user_id),
            order_by="day_of_month",
        )
        return [RecurringItem.from_document(s.id, s.data) for s in snapshots]

    # =========================================================================
    # POSTING
    # =========================================================================

    async def process_recurring_bills(
        self,
        user_id: str,
        target_month_key: str,
    ) -> RecurringRunReport:
        """
        Post every recurring item not yet posted into target_month_key.

        Never raises for a single item's failure; see the report instead.

        Raises:
            ValidationError: If target_month_key is not YYYY-MM
        """
        target_month_key = self._validator.validate_month_key(target_month_key)
        report = RecurringRunReport(month_key=target_month_key)

        for item in await self.list_recurring_items(user_id):
            if not item.is_due_for(target_month_key):
                report.skipped.append(item.id)
                continue

            try:
                posted = await self._post(user_id, item, target_month_key)
            except Exception as e:
                logger.error(
                    "recurring_bill_failed",
                    user_id=user_id,
                    recurring_id=item.id,
                    month_key=target_month_key,
                    error=str(e),
                    exc_info=True,
                )
                self._activity.log(ActivityEventBuilder.recurring_bill_failed(
                    user_id, item.id, target_month_key, e,
                ))
                report.failures.append(RecurringFailure(
                    recurring_id=item.id,
                    name=item.name,
                    error_type=type(e).__name__,
                    message=str(e),
                ))
                continue

            if posted is None:
                # Another run posted it (or the item was deleted) in the meantime.
                report.skipped.append(item.id)
                continue

            report.posted.append(posted)
            self._activity.log(ActivityEventBuilder.recurring_bill_posted(user_id, item.id, posted))

        self._activity.log(ActivityEventBuilder.recurring_run_completed(user_id, report))
        return report

    async def _post(
        self,
        user_id: str,
        item: RecurringItem,
        target_month_key: str,
    ) -> Optional[BudgetItem]:
        """Post one item in one transaction; None if there was nothing to do."""
        month_path = self._paths.month_budget(user_id, target_month_key)
        recurring_path = self._paths.recurring_item(user_id, item.id)
        items_path = self._paths.items(user_id, target_month_key)

        read_plan = ReadPlan(
            accounts=[item.account_id] if item.account_id else [],
            documents={"month": month_path, "recurring": recurring_path},
        )

        def write_plan(ctx: AtomicContext) -> Optional[BudgetItem]:
            snapshot = ctx.document("recurring")
            if not snapshot.exists:
                return None
            current = RecurringItem.from_document(snapshot.id, snapshot.data)
            if not current.is_due_for(target_month_key):
                return None

            if not ctx.document("month").exists:
                ctx.set(month_path, MonthBudget(
                    income=0,
                    rule=self._settings.default_rule,
                ).to_document())

            if current.account_id:
                AccountStore.adjust_balance(ctx, current.account_id, -current.amount)

            posted = BudgetItem(
                name=f"{self._settings.recurring_marker} {current.name}",
                amount=current.amount,
                category=current.category,
                date=recurring_post_date(target_month_key, current.day_of_month),
                account_id=current.account_id,
                is_recurring=True,
            )
            posted.id = ctx.create(items_path, posted.to_document())
            ctx.update(recurring_path, {"last_processed_month": target_month_key})
            return posted

        return await self._engine.run_atomic(user_id, read_plan, write_plan)

    # =========================================================================
    # LOOKAHEAD
    # =========================================================================

    async def upcoming_bills(
        self,
        user_id: str,
        today: date,
        window_days: Optional[int] = None,
    ) -> list[UpcomingBill]:
        """
        Recurring items falling due between today and today + window_days
        within the current month, soonest first.
        """
        if window_days is None:
            window_days = self._settings.upcoming_window_days

        upcoming = []
        for item in await self.list_recurring_items(user_id):
            due = recurring_post_date(month_key_for(today), item.day_of_month)
            days = (due - today).days
            if 0 <= days <= window_days:
                upcoming.append(UpcomingBill(item=item, days_until_due=days))

        return sorted(upcoming, key=lambda bill: bill.days_until_due)
