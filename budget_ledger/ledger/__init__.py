"""
Ledger Package

The balance-affecting operations: accounts, budget items, recurring bills
and savings goals. Every one of them runs through the transaction engine.
"""

from budget_ledger.ledger.accounts import AccountStore
from budget_ledger.ledger.budget import BudgetLedger
from budget_ledger.ledger.goals import SavingsGoalLedger
from budget_ledger.ledger.recurring import RecurringBillEngine
from budget_ledger.ledger.summary import build_month_summary, spent_by_category

__all__ = [
    "AccountStore",
    "BudgetLedger",
    "RecurringBillEngine",
    "SavingsGoalLedger",
    "build_month_summary",
    "spent_by_category",
]
