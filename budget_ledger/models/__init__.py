"""
Data Models Package

This package contains all Pydantic models used by the budget ledger.
Every document read from or written to the store conforms to these schemas.
"""

from budget_ledger.models.ledger import (
    Account,
    BudgetCategory,
    BudgetItem,
    BudgetRule,
    Deposit,
    LedgerDocument,
    MonthBudget,
    RecurringItem,
    SavingsGoal,
    is_month_key,
    month_key,
    month_key_for,
    parse_month_key,
    recurring_post_date,
)
from budget_ledger.models.inputs import (
    AccountInput,
    BudgetItemInput,
    GoalInput,
    RecurringItemInput,
)
from budget_ledger.models.reports import (
    CategorySummary,
    GoalProgress,
    MonthSummary,
    RecurringFailure,
    RecurringRunReport,
    UpcomingBill,
)
from budget_ledger.models.activity import (
    ActivityEvent,
    ActivityEventBuilder,
    ActivityEventType,
    ActivitySeverity,
)

__all__ = [
    # Ledger documents
    "Account",
    "BudgetCategory",
    "BudgetItem",
    "BudgetRule",
    "Deposit",
    "LedgerDocument",
    "MonthBudget",
    "RecurringItem",
    "SavingsGoal",
    # Month keys
    "is_month_key",
    "month_key",
    "month_key_for",
    "parse_month_key",
    "recurring_post_date",
    # Inputs
    "AccountInput",
    "BudgetItemInput",
    "GoalInput",
    "RecurringItemInput",
    # Derived views
    "CategorySummary",
    "GoalProgress",
    "MonthSummary",
    "RecurringFailure",
    "RecurringRunReport",
    "UpcomingBill",
    # Activity models
    "ActivityEvent",
    "ActivityEventBuilder",
    "ActivityEventType",
    "ActivitySeverity",
]
