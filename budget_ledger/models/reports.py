"""
Derived Views

Read-only results computed from ledger documents: month summaries, goal
progress, upcoming bills and recurring-run reports. Nothing here is ever
written back to the store.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from budget_ledger.models.ledger import (
    BudgetCategory,
    BudgetItem,
    BudgetRule,
    RecurringItem,
)


class CategorySummary(BaseModel):
    """Spending against one category's limit for a month."""

    category: BudgetCategory
    spent: Decimal = Decimal("0")
    limit: Decimal = Decimal("0")
    item_count: int = 0

    @property
    def remaining(self) -> Decimal:
        return self.limit - self.spent

    @property
    def over_budget(self) -> bool:
        """Advisory only. The ledger never blocks an item for this."""
        return self.spent > self.limit


class MonthSummary(BaseModel):
    """Totals for one month's ledger."""

    month_key: str
    income: Decimal
    rule: BudgetRule
    categories: list[CategorySummary] = Field(default_factory=list)
    total_spent: Decimal = Decimal("0")

    @property
    def saved(self) -> Decimal:
        return max(Decimal("0"), self.income - self.total_spent)

    @property
    def savings_rate(self) -> Decimal:
        """Percent of income not spent, 0 when there is no income."""
        if self.income <= 0:
            return Decimal("0")
        return (self.saved / self.income * Decimal("100")).quantize(Decimal("0.1"))

    def category(self, category: BudgetCategory) -> Optional[CategorySummary]:
        for summary in self.categories:
            if summary.category == category:
                return summary
        return None

    @property
    def over_budget_categories(self) -> list[BudgetCategory]:
        return [c.category for c in self.categories if c.over_budget]


class GoalProgress(BaseModel):
    goal_id: str
    name: str
    total_amount: Decimal
    current_saved: Decimal

    @property
    def percent(self) -> Decimal:
        """Progress toward the target, capped at 100."""
        if self.total_amount <= 0:
            return Decimal("0")
        raw = self.current_saved / self.total_amount * Decimal("100")
        return min(Decimal("100"), raw).quantize(Decimal("0.1"))

    @property
    def remaining(self) -> Decimal:
        return max(Decimal("0"), self.total_amount - self.current_saved)


class UpcomingBill(BaseModel):
    """A recurring item falling due within the lookahead window."""

    item: RecurringItem
    days_until_due: int = Field(ge=0)

    @property
    def due_label(self) -> str:
        if self.days_until_due == 0:
            return "Due Today"
        if self.days_until_due == 1:
            return "Tomorrow"
        return f"In {self.days_until_due} Days"


class RecurringFailure(BaseModel):
    recurring_id: str
    name: str
    error_type: str
    message: str


class RecurringRunReport(BaseModel):
    """
    Outcome of one process_recurring_bills run.

    One item's failure never stops the run; it is recorded here instead.
    """

    month_key: str
    posted: list[BudgetItem] = Field(default_factory=list)
    skipped: list[str] = Field(
        default_factory=list,
        description="Recurring ids already processed for this month"
    )
    failures: list[RecurringFailure] = Field(default_factory=list)

    @property
    def posted_count(self) -> int:
        return len(self.posted)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)
