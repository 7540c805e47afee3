"""
Activity Models for Budget Ledger

Every balance-affecting action emits one ActivityEvent to the structured log.
This provides:
1. Traceability of balance changes while debugging
2. Visibility into recurring runs (what posted, what failed, why)

Events are logged, not stored. The ledger keeps no history beyond its
documents.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class ActivityEventType(str, Enum):
    """Types of ledger activity."""
    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_DELETED = "account_deleted"
    BALANCE_SET = "balance_set"

    # Budget items
    BUDGET_ITEM_ADDED = "budget_item_added"
    BUDGET_ITEM_DELETED = "budget_item_deleted"
    MONTH_BUDGET_UPDATED = "month_budget_updated"

    # Recurring bills
    RECURRING_ITEM_CREATED = "recurring_item_created"
    RECURRING_ITEM_DELETED = "recurring_item_deleted"
    RECURRING_BILL_POSTED = "recurring_bill_posted"
    RECURRING_BILL_FAILED = "recurring_bill_failed"
    RECURRING_RUN_COMPLETED = "recurring_run_completed"

    # Savings goals
    GOAL_CREATED = "goal_created"
    GOAL_DEPOSIT_RECORDED = "goal_deposit_recorded"
    GOAL_DELETED = "goal_deleted"

    # Failures
    ACTION_FAILED = "action_failed"


class ActivitySeverity(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ActivityEvent(BaseModel):
    """A single ledger activity event."""

    event_id: UUID = Field(
        default_factory=uuid4
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: ActivityEventType
    severity: ActivitySeverity = ActivitySeverity.INFO

    user_id: Optional[str] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'account', 'budget_item', 'goal')"
    )
    entity_id: Optional[str] = None

    description: str = Field(
        ...,
        max_length=500
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_type: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_type": self.error_type,
            "error_message": self.error_message,
        }


def _money(amount: Decimal) -> str:
    return f"{amount:.2f}"


class ActivityEventBuilder:
    """
    Helper class to build activity events with common patterns.

    Usage:
        event = ActivityEventBuilder.budget_item_added(user_id, item)
        event = ActivityEventBuilder.action_failed(user_id, "deposit", error)
    """

    @staticmethod
    def account_created(user_id: str, account_id: str, nickname: str, balance: Decimal) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.ACCOUNT_CREATED,
            user_id=user_id,
            entity_type="account",
            entity_id=account_id,
            description=f"Account created: {nickname}",
            details={"opening_balance": _money(balance)},
        )

    @staticmethod
    def account_deleted(user_id: str, account_id: str) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.ACCOUNT_DELETED,
            severity=ActivitySeverity.WARNING,
            user_id=user_id,
            entity_type="account",
            entity_id=account_id,
            description="Account deleted; existing ledger entries keep its id",
        )

    @staticmethod
    def balance_set(user_id: str, account_id: str, balance: Decimal) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.BALANCE_SET,
            user_id=user_id,
            entity_type="account",
            entity_id=account_id,
            description="Balance corrected manually",
            details={"balance": _money(balance)},
        )

    @staticmethod
    def budget_item_added(user_id: str, month_key: str, item) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.BUDGET_ITEM_ADDED,
            user_id=user_id,
            entity_type="budget_item",
            entity_id=item.id,
            description=f"Budget item added: {item.name} - {_money(item.amount)}",
            details={
                "month_key": month_key,
                "category": item.category.value,
                "account_id": item.account_id,
                "to_account_id": item.to_account_id,
            },
        )

    @staticmethod
    def budget_item_deleted(user_id: str, month_key: str, item) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.BUDGET_ITEM_DELETED,
            user_id=user_id,
            entity_type="budget_item",
            entity_id=item.id,
            description=f"Budget item deleted and reversed: {item.name}",
            details={
                "month_key": month_key,
                "amount": _money(item.amount),
            },
        )

    @staticmethod
    def month_budget_updated(user_id: str, month_key: str, fields: dict) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.MONTH_BUDGET_UPDATED,
            user_id=user_id,
            entity_type="month_budget",
            entity_id=month_key,
            description=f"Month budget updated: {', '.join(sorted(fields))}",
            details=fields,
        )

    @staticmethod
    def recurring_item_created(user_id: str, item) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.RECURRING_ITEM_CREATED,
            user_id=user_id,
            entity_type="recurring_item",
            entity_id=item.id,
            description=f"Recurring item registered: {item.name} on day {item.day_of_month}",
        )

    @staticmethod
    def recurring_item_deleted(user_id: str, recurring_id: str) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.RECURRING_ITEM_DELETED,
            user_id=user_id,
            entity_type="recurring_item",
            entity_id=recurring_id,
            description="Recurring item stopped",
        )

    @staticmethod
    def recurring_bill_posted(user_id: str, recurring_id: str, item) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.RECURRING_BILL_POSTED,
            user_id=user_id,
            entity_type="recurring_item",
            entity_id=recurring_id,
            description=f"Recurring bill posted: {item.name}",
            details={
                "budget_item_id": item.id,
                "date": item.date.isoformat(),
                "amount": _money(item.amount),
            },
        )

    @staticmethod
    def recurring_bill_failed(
        user_id: str,
        recurring_id: str,
        month_key: str,
        error: Exception,
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.RECURRING_BILL_FAILED,
            severity=ActivitySeverity.ERROR,
            user_id=user_id,
            entity_type="recurring_item",
            entity_id=recurring_id,
            description=f"Recurring bill failed for {month_key}",
            details={"month_key": month_key},
            error_type=type(error).__name__,
            error_message=str(error),
        )

    @staticmethod
    def recurring_run_completed(user_id: str, report) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.RECURRING_RUN_COMPLETED,
            severity=ActivitySeverity.WARNING if report.has_failures else ActivitySeverity.INFO,
            user_id=user_id,
            entity_type="month_budget",
            entity_id=report.month_key,
            description=(
                f"Recurring run for {report.month_key}: "
                f"{report.posted_count} posted, {len(report.failures)} failed"
            ),
            details={
                "posted": report.posted_count,
                "skipped": len(report.skipped),
                "failed": len(report.failures),
            },
        )

    @staticmethod
    def goal_created(user_id: str, goal) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.GOAL_CREATED,
            user_id=user_id,
            entity_type="goal",
            entity_id=goal.id,
            description=f"Savings goal created: {goal.name}",
            details={"total_amount": _money(goal.total_amount)},
        )

    @staticmethod
    def goal_deposit_recorded(user_id: str, goal_id: str, deposit) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.GOAL_DEPOSIT_RECORDED,
            user_id=user_id,
            entity_type="goal",
            entity_id=goal_id,
            description=f"Deposit of {_money(deposit.amount)} recorded",
            details={
                "deposit_id": deposit.id,
                "account_id": deposit.account_id,
            },
        )

    @staticmethod
    def goal_deleted(user_id: str, goal_id: str) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.GOAL_DELETED,
            severity=ActivitySeverity.WARNING,
            user_id=user_id,
            entity_type="goal",
            entity_id=goal_id,
            description="Savings goal deleted; deposits were not refunded",
        )

    @staticmethod
    def action_failed(user_id: Optional[str], action: str, error: Exception) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.ACTION_FAILED,
            severity=ActivitySeverity.ERROR,
            user_id=user_id,
            description=f"Action failed: {action}",
            details={"action": action},
            error_type=type(error).__name__,
            error_message=str(error),
        )
