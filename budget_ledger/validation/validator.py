"""
Input Validation

DESIGN DECISION: Every ledger call validates its input before touching the
store. Validation happens in two steps:

STEP 1 - PARSING:
- Raw dicts are parsed into the input models
- Type and format errors (e.g. an unparseable date) become issues

STEP 2 - RULES:
- Required fields present
- Amounts strictly positive
- Day of month within 1-31

All issues are collected and raised together as one ValidationError, so a
caller can show every problem at once. A rejected call never reaches the
store, so nothing is ever partially applied.

IMPORTANT: Validation NEVER silently fixes issues.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional, TypeVar, Union

import pydantic
from pydantic import BaseModel, Field

from budget_ledger.errors import LedgerError
from budget_ledger.models.inputs import (
    AccountInput,
    BudgetItemInput,
    GoalInput,
    RecurringItemInput,
)
from budget_ledger.models.ledger import BudgetCategory, BudgetRule, is_month_key
from budget_ledger.services.store.interface import is_valid_segment


M = TypeVar("M", bound=BaseModel)


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    suggested_fix: Optional[str] = None


class ValidationError(LedgerError):
    """Input was rejected before any store call."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(issue.message for issue in issues) or "Invalid input")

    @property
    def fields(self) -> list[str]:
        return [issue.field for issue in self.issues]


def _missing(field: str, label: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type="missing",
        message=f"{label} is required",
    )


def _not_positive(field: str, label: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type="invalid_value",
        message=f"{label} must be greater than zero",
    )


class LedgerValidator:
    """Validates ledger inputs; every method raises ValidationError or returns clean input."""

    def _parse(self, model: type[M], data: Union[M, dict[str, Any]]) -> M:
        if isinstance(data, model):
            return data
        try:
            return model.model_validate(data)
        except pydantic.ValidationError as e:
            issues = [
                ValidationIssue(
                    field=".".join(str(part) for part in error["loc"]) or "input",
                    issue_type="invalid_format",
                    message=f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}",
                )
                for error in e.errors()
            ]
            raise ValidationError(issues) from e

    def _raise_if_any(self, issues: list[ValidationIssue]) -> None:
        if issues:
            raise ValidationError(issues)

    def validate_budget_item(
        self,
        data: Union[BudgetItemInput, dict[str, Any]],
    ) -> BudgetItemInput:
        """
        Validate a new budget item.

        Checks:
        - Name present
        - Amount present and > 0
        - Source account present
        - Date present (parseable dates are guaranteed by step 1)
        - Transfer destination differs from the source
        """
        item = self._parse(BudgetItemInput, data)
        issues = []

        if not item.name:
            issues.append(_missing("name", "Name"))

        if item.amount is None:
            issues.append(_missing("amount", "Amount"))
        elif item.amount <= 0:
            issues.append(_not_positive("amount", "Amount"))

        if not item.account_id:
            issues.append(ValidationIssue(
                field="account_id",
                issue_type="missing",
                message="Account is required",
                suggested_fix="Pick the account this item is paid from",
            ))
        else:
            self._check_id("account_id", item.account_id, issues)

        if item.to_account_id:
            self._check_id("to_account_id", item.to_account_id, issues)

        if item.date is None:
            issues.append(_missing("date", "Date"))

        if item.to_account_id and item.to_account_id == item.account_id:
            issues.append(ValidationIssue(
                field="to_account_id",
                issue_type="invalid_value",
                message="Transfer destination must differ from the source account",
            ))

        self._raise_if_any(issues)
        return item

    def validate_account(
        self,
        data: Union[AccountInput, dict[str, Any]],
    ) -> AccountInput:
        account = self._parse(AccountInput, data)
        issues = []
        if not account.bank_name:
            issues.append(_missing("bank_name", "Bank name"))
        if not account.nickname:
            issues.append(_missing("nickname", "Nickname"))
        self._raise_if_any(issues)
        return account

    def validate_recurring_item(
        self,
        data: Union[RecurringItemInput, dict[str, Any]],
    ) -> RecurringItemInput:
        item = self._parse(RecurringItemInput, data)
        issues = []

        if not item.name:
            issues.append(_missing("name", "Name"))

        if item.amount is None:
            issues.append(_missing("amount", "Amount"))
        elif item.amount <= 0:
            issues.append(_not_positive("amount", "Amount"))

        if item.day_of_month is None:
            issues.append(_missing("day_of_month", "Day of month"))
        elif not 1 <= item.day_of_month <= 31:
            issues.append(ValidationIssue(
                field="day_of_month",
                issue_type="invalid_value",
                message="Day of month must be between 1 and 31",
            ))

        if item.account_id:
            self._check_id("account_id", item.account_id, issues)

        self._raise_if_any(issues)
        return item

    def validate_goal(
        self,
        data: Union[GoalInput, dict[str, Any]],
    ) -> GoalInput:
        goal = self._parse(GoalInput, data)
        issues = []

        if not goal.name:
            issues.append(_missing("name", "Goal name"))

        if goal.total_amount is None:
            issues.append(_missing("total_amount", "Target amount"))
        elif goal.total_amount <= 0:
            issues.append(_not_positive("total_amount", "Target amount"))

        self._raise_if_any(issues)
        return goal

    def validate_deposit(self, amount: Any, account_id: Optional[str]) -> Decimal:
        """Validate a goal deposit; returns the amount as a Decimal."""
        issues = []
        parsed = self._to_decimal("amount", amount, issues)
        if parsed is not None and parsed <= 0:
            issues.append(_not_positive("amount", "Deposit amount"))
        if not account_id:
            issues.append(ValidationIssue(
                field="account_id",
                issue_type="missing",
                message="Account is required",
                suggested_fix="Pick the account the deposit comes from",
            ))
        else:
            self._check_id("account_id", account_id, issues)
        self._raise_if_any(issues)
        return parsed

    def validate_income(self, income: Any) -> Decimal:
        issues = []
        parsed = self._to_decimal("income", income, issues)
        if parsed is not None and parsed < 0:
            issues.append(ValidationIssue(
                field="income",
                issue_type="invalid_value",
                message="Income cannot be negative",
            ))
        self._raise_if_any(issues)
        return parsed

    def validate_balance(self, balance: Any) -> Decimal:
        """Any finite number; balances may go negative."""
        issues = []
        parsed = self._to_decimal("balance", balance, issues)
        self._raise_if_any(issues)
        return parsed

    def validate_category(self, category: Any) -> BudgetCategory:
        try:
            return BudgetCategory(category)
        except ValueError:
            raise ValidationError([ValidationIssue(
                field="category",
                issue_type="invalid_value",
                message=f"Unknown category: {category!r}",
            )]) from None

    def validate_rule(self, rule: Any) -> BudgetRule:
        try:
            return BudgetRule(rule)
        except ValueError:
            raise ValidationError([ValidationIssue(
                field="rule",
                issue_type="invalid_value",
                message=f"Unknown budget rule: {rule!r}",
                suggested_fix=f"Use one of {', '.join(r.value for r in BudgetRule)}",
            )]) from None

    def validate_month_key(self, key: Any) -> str:
        if not isinstance(key, str) or not is_month_key(key):
            raise ValidationError([ValidationIssue(
                field="month_key",
                issue_type="invalid_format",
                message=f"Invalid month key: {key!r}",
                suggested_fix="Use the YYYY-MM format, e.g. 2026-03",
            )])
        return key

    def validate_id(self, value: Any, field: str = "id") -> str:
        """
        Validate a document id supplied by a caller.

        Ids become path segments, so they must be non-empty and slash-free.
        """
        issues = []
        self._check_id(field, value, issues)
        self._raise_if_any(issues)
        return value

    def _check_id(self, field: str, value: Any, issues: list[ValidationIssue]) -> None:
        if not is_valid_segment(value):
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message=f"Invalid {field.replace('_', ' ')}: {value!r}",
            ))

    def _to_decimal(
        self,
        field: str,
        value: Any,
        issues: list[ValidationIssue],
    ) -> Optional[Decimal]:
        if value is None or value == "":
            issues.append(_missing(field, field.replace("_", " ").capitalize()))
            return None
        try:
            parsed = Decimal(str(value))
        except InvalidOperation:
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message=f"{field}: not a number ({value!r})",
            ))
            return None
        if not parsed.is_finite():
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message=f"{field}: not a finite number",
            ))
            return None
        return parsed

    def get_user_friendly_summary(self, error: ValidationError) -> str:
        """One line per issue, with a hint where there is one."""
        lines = ["Please fix the following:"]
        for issue in error.issues:
            lines.append(f"   • {issue.message}")
            if issue.suggested_fix:
                lines.append(f"     {issue.suggested_fix}")
        return "\n".join(lines)
