"""
Core Data Models for Budget Ledger

These models define the schemas for every document the ledger reads or writes.
They are designed to:
1. Enforce type safety at runtime
2. Round-trip cleanly through the document store (to_document / from_document)
3. Keep money as Decimal end to end

DESIGN DECISION: Documents are stored in JSON mode (Decimal -> str,
date -> "YYYY-MM-DD"). The document id is the last path segment, never a
field inside the document.
"""

import calendar
import re
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


MONTH_KEY_PATTERN = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# MONTH KEYS
# =============================================================================

def month_key(year: int, month: int) -> str:
    """Build a zero-padded ``YYYY-MM`` key."""
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be 1-12, got {month}")
    return f"{year:04d}-{month:02d}"


def parse_month_key(key: str) -> tuple[int, int]:
    """Split a ``YYYY-MM`` key into (year, month)."""
    match = MONTH_KEY_PATTERN.match(key or "")
    if not match:
        raise ValueError(f"Invalid month key: {key!r} (expected YYYY-MM)")
    return int(match.group(1)), int(match.group(2))


def is_month_key(key: str) -> bool:
    return bool(MONTH_KEY_PATTERN.match(key or ""))


def month_key_for(day: date) -> str:
    return month_key(day.year, day.month)


def recurring_post_date(key: str, day_of_month: int) -> date:
    """
    Date a recurring bill posts on within a month.

    Days past the end of a short month land on its last day
    (day 31 in "2026-02" posts on 2026-02-28).
    """
    year, month = parse_month_key(key)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day_of_month, last_day))


# =============================================================================
# ENUMS
# =============================================================================

class BudgetCategory(str, Enum):
    """Categories a budget item can be filed under."""
    NEEDS = "needs"
    WANTS = "wants"
    SAVINGS = "savings"
    SPENDING = "spending"
    DEBT = "debt"
    INCOME = "income"


class BudgetRule(str, Enum):
    """
    Budgeting rules a month can follow.

    Each rule splits income into per-category limits. Limits are advisory:
    the ledger reports over-budget categories but never blocks an item.
    """
    FIFTY_THIRTY_TWENTY = "50/30/20"
    EIGHTY_TWENTY = "80/20"
    SEVENTY_TWENTY_TEN = "70/20/10"

    def allocations(self) -> dict[BudgetCategory, Decimal]:
        """Percent of income allotted to each category under this rule."""
        if self is BudgetRule.EIGHTY_TWENTY:
            return {
                BudgetCategory.SPENDING: Decimal("80"),
                BudgetCategory.SAVINGS: Decimal("20"),
            }
        if self is BudgetRule.SEVENTY_TWENTY_TEN:
            return {
                BudgetCategory.SPENDING: Decimal("70"),
                BudgetCategory.SAVINGS: Decimal("20"),
                BudgetCategory.DEBT: Decimal("10"),
            }
        return {
            BudgetCategory.NEEDS: Decimal("50"),
            BudgetCategory.WANTS: Decimal("30"),
            BudgetCategory.SAVINGS: Decimal("20"),
        }


# =============================================================================
# DOCUMENT BASE
# =============================================================================

class LedgerDocument(BaseModel):
    """Base for models persisted as store documents."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default="",
        description="Document id (last path segment)"
    )

    def to_document(self) -> dict[str, Any]:
        """Serialize for the store, without the id."""
        return self.model_dump(mode="json", exclude={"id"})

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]):
        return cls.model_validate({**data, "id": doc_id})


# =============================================================================
# ACCOUNTS
# =============================================================================

class Account(LedgerDocument):
    """
    A bank account balance record.

    Balance changes only through the transaction engine, or through a
    direct manual correction (AccountStore.set_balance).
    """
    bank_name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Bank the account is held at"
    )
    nickname: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="User-facing account name"
    )
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Current balance (may go negative)"
    )


# =============================================================================
# BUDGET ITEMS
# =============================================================================

class BudgetItem(LedgerDocument):
    """
    A categorized entry in a month's ledger.

    An item with account_id debited that account when it was created;
    an item with to_account_id also credited the destination (a transfer).
    """
    name: str = Field(
        ...,
        min_length=1,
        max_length=200
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount moved by this item"
    )
    category: BudgetCategory
    date: date
    account_id: Optional[str] = Field(
        default=None,
        description="Account debited by this item"
    )
    to_account_id: Optional[str] = Field(
        default=None,
        description="Account credited when this item is a transfer"
    )
    is_recurring: bool = Field(
        default=False,
        description="Posted by the recurring bill engine"
    )
    created_at: datetime = Field(
        default_factory=utc_now
    )

    @property
    def is_transfer(self) -> bool:
        return bool(self.to_account_id)


class MonthBudget(BaseModel):
    """
    Income and rule for one month.

    A month without a document behaves like the defaults below.
    """
    income: Decimal = Field(
        default=Decimal("0"),
        ge=0
    )
    rule: BudgetRule = Field(
        default=BudgetRule.FIFTY_THIRTY_TWENTY
    )

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    def limit_for(self, category: BudgetCategory) -> Decimal:
        percent = self.rule.allocations().get(category, Decimal("0"))
        return self.income * percent / Decimal("100")


# =============================================================================
# RECURRING ITEMS
# =============================================================================

class RecurringItem(LedgerDocument):
    """
    A subscription or bill template.

    last_processed_month is the idempotency marker: the item posts into
    month M only while last_processed_month != M.
    """
    name: str = Field(
        ...,
        min_length=1,
        max_length=200
    )
    amount: Decimal = Field(
        ...,
        ge=0
    )
    day_of_month: int = Field(
        ...,
        ge=1,
        le=31
    )
    category: BudgetCategory = Field(
        default=BudgetCategory.NEEDS
    )
    account_id: Optional[str] = None
    last_processed_month: str = Field(
        default="",
        description="Month key this item last posted into, empty if never"
    )

    @field_validator('last_processed_month')
    @classmethod
    def validate_last_processed(cls, v: str) -> str:
        if v and not is_month_key(v):
            raise ValueError(f"Invalid month key: {v!r}")
        return v

    def is_due_for(self, key: str) -> bool:
        return self.last_processed_month != key


# =============================================================================
# SAVINGS GOALS
# =============================================================================

class SavingsGoal(LedgerDocument):
    """
    A savings target.

    The amount saved so far is not stored here; it is always the sum of
    the goal's deposit records.
    """
    name: str = Field(
        ...,
        min_length=1,
        max_length=200
    )
    total_amount: Decimal = Field(
        ...,
        gt=0,
        description="Target amount"
    )
    target_date: Optional[date] = None
    created_at: datetime = Field(
        default_factory=utc_now
    )


class Deposit(LedgerDocument):
    """One transfer from an account into a savings goal."""
    amount: Decimal = Field(
        ...,
        gt=0
    )
    account_id: str
    date: datetime = Field(
        default_factory=utc_now
    )
