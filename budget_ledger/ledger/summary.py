"""
Month Summary

Pure functions turning a month's budget and items into a MonthSummary.
Limits come from the month's rule; over-budget is reported, never enforced.
"""

from decimal import Decimal

from budget_ledger.models.ledger import BudgetCategory, BudgetItem, MonthBudget
from budget_ledger.models.reports import CategorySummary, MonthSummary


def spent_by_category(items: list[BudgetItem]) -> dict[BudgetCategory, Decimal]:
    totals: dict[BudgetCategory, Decimal] = {}
    for item in items:
        totals[item.category] = totals.get(item.category, Decimal("0")) + item.amount
    return totals


def build_month_summary(
    month_key: str,
    budget: MonthBudget,
    items: list[BudgetItem],
) -> MonthSummary:
    """
    Summarize one month.

    Every category the rule allots income to is listed, even with nothing
    spent, followed by any other category that has items. Income-category
    items never count as spending.
    """
    totals = spent_by_category(items)
    counts: dict[BudgetCategory, int] = {}
    for item in items:
        counts[item.category] = counts.get(item.category, 0) + 1

    allotted = list(budget.rule.allocations())
    extra = [
        category for category in BudgetCategory
        if category in totals
        and category not in allotted
        and category is not BudgetCategory.INCOME
    ]

    categories = [
        CategorySummary(
            category=category,
            spent=totals.get(category, Decimal("0")),
            limit=budget.limit_for(category),
            item_count=counts.get(category, 0),
        )
        for category in allotted + extra
    ]

    return MonthSummary(
        month_key=month_key,
        income=budget.income,
        rule=budget.rule,
        categories=categories,
        total_spent=sum(
            (amount for category, amount in totals.items()
             if category is not BudgetCategory.INCOME),
            Decimal("0"),
        ),
    )
