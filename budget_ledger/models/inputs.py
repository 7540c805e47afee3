"""
Input Models

What callers hand to the ledgers before validation. Every field is optional
here: missing values are reported by the validator as ValidationIssues
instead of surfacing as raw schema errors.
"""

import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from budget_ledger.models.ledger import BudgetCategory


class BudgetItemInput(BaseModel):
    """Fields entered for a new budget item (category is passed separately)."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = None
    amount: Optional[Decimal] = None
    date: Optional[datetime.date] = None
    account_id: Optional[str] = None
    to_account_id: Optional[str] = Field(
        default=None,
        description="Set for transfers between two accounts"
    )


class AccountInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    bank_name: Optional[str] = None
    nickname: Optional[str] = None
    balance: Decimal = Decimal("0")


class RecurringItemInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = None
    amount: Optional[Decimal] = None
    day_of_month: Optional[int] = 1
    category: BudgetCategory = BudgetCategory.NEEDS
    account_id: Optional[str] = None


class GoalInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = None
    total_amount: Optional[Decimal] = None
    target_date: Optional[datetime.date] = None
