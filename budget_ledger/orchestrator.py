"""
Session Orchestrator for Budget Ledger

This module ties the ledgers to a signed-in user and defines the
user-facing actions: accounts, budget items, month budget, recurring bills
and savings goals.

DESIGN DECISION: The session enforces the boundaries:
- It is the only place that knows who the current user is; every ledger
  call receives the user id explicitly
- A failed balance action is never reported as a success
- Irreversible deletes are not executed until the caller confirms them
- Changing the active month (or signing in) runs the recurring bill engine
  for that month

Every action returns an ActionOutcome instead of raising for expected
failures (bad input, missing accounts, exhausted retries).
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel

from budget_ledger.activity import ActivityLogger
from budget_ledger.engine import TransactionEngine
from budget_ledger.errors import LedgerError
from budget_ledger.ledger import (
    AccountStore,
    BudgetLedger,
    RecurringBillEngine,
    SavingsGoalLedger,
)
from budget_ledger.models.ledger import (
    BudgetCategory,
    BudgetItem,
    BudgetRule,
    month_key,
    month_key_for,
)
from budget_ledger.models.reports import RecurringRunReport
from budget_ledger.services.auth import AuthProvider
from budget_ledger.services.store import (
    AccountNotFoundError,
    DocumentStore,
    GoalNotFoundError,
    InMemoryDocumentStore,
    LedgerPaths,
    NotFoundError,
    TransactionConflictError,
)
from budget_ledger.validation import LedgerValidator, ValidationError


RETRY_MESSAGE = "Action failed, please retry."
SIGN_IN_MESSAGE = "Please sign in first."

CONFIRM_DELETE_GOAL = "Delete this goal? Money will NOT be refunded to accounts automatically."
CONFIRM_DELETE_ACCOUNT = "Delete this account? History will remain, but the account will be gone."
CONFIRM_DELETE_RECURRING = "Stop this subscription? It won't be auto-added anymore."
CONFIRM_DELETE_ITEM = 'Delete "{name}"? This will reverse the transaction.'


class ActionOutcome(BaseModel):
    """Result of one user action."""

    success: bool
    message: str
    requires_confirmation: bool = False
    data: Any = None


class BudgetSession:
    """
    One user's view of the ledger.

    Holds the auth provider and the active month. Actions run against the
    signed-in user; with nobody signed in they fail without touching the
    store.
    """

    def __init__(
        self,
        auth: AuthProvider,
        accounts: Optional[AccountStore] = None,
        budget: Optional[BudgetLedger] = None,
        recurring: Optional[RecurringBillEngine] = None,
        goals: Optional[SavingsGoalLedger] = None,
        validator: Optional[LedgerValidator] = None,
        activity_logger: Optional[ActivityLogger] = None,
        today: Optional[date] = None,
        store: Optional[DocumentStore] = None,
    ):
        backends = _component_backends(accounts, budget, recurring, goals)
        if store is None and backends:
            store = backends[0][0]
        if any(backend_store is not store for backend_store, _ in backends):
            raise ValueError("All ledger components must share one document store")

        if len(backends) < 4:
            # Missing components join the injected ones on the same store and namespace.
            defaults = create_ledger_components(
                store,
                namespace=backends[0][1].namespace if backends else None,
                activity_logger=activity_logger,
            )
            accounts = accounts or defaults[0]
            budget = budget or defaults[1]
            recurring = recurring or defaults[2]
            goals = goals or defaults[3]

        self._auth = auth
        self.accounts = accounts
        self.budget = budget
        self.recurring = recurring
        self.goals = goals
        self._validator = validator or LedgerValidator()
        self._activity = activity_logger or ActivityLogger()

        self._month_key = month_key_for(today or date.today())
        self._last_report: Optional[RecurringRunReport] = None
        self._recurring_task: Optional[asyncio.Task] = None
        self._unsubscribe = auth.on_auth_state_changed(self._on_auth_state_changed)

    # =========================================================================
    # SESSION STATE
    # =========================================================================

    @property
    def user_id(self) -> Optional[str]:
        return self._auth.current_user_id()

    @property
    def month_key(self) -> str:
        return self._month_key

    @property
    def last_recurring_report(self) -> Optional[RecurringRunReport]:
        return self._last_report

    @property
    def pending_recurring(self) -> Optional[asyncio.Task]:
        """Recurring run started by the last sign-in, if any."""
        return self._recurring_task

    def _on_auth_state_changed(self, user_id: Optional[str]) -> None:
        self._last_report = None
        if user_id is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to schedule on; the next select_month runs it.
            return
        self._recurring_task = loop.create_task(self.run_recurring())

    def close(self) -> None:
        """Stop listening to auth changes."""
        self._unsubscribe()

    async def select_month(self, year: int, month: int) -> ActionOutcome:
        """Make a month active and post its recurring bills."""
        try:
            key = month_key(year, month)
        except ValueError as e:
            return ActionOutcome(success=False, message=str(e))
        self._month_key = key
        return await self.run_recurring()

    async def run_recurring(self) -> ActionOutcome:
        """Post recurring bills into the active month (safe to repeat)."""

        async def operation(user_id: str) -> RecurringRunReport:
            report = await self.recurring.process_recurring_bills(user_id, self._month_key)
            self._last_report = report
            return report

        def describe(report: RecurringRunReport) -> str:
            message = f"{report.posted_count} recurring bill(s) added for {report.month_key}"
            if report.has_failures:
                message += f"; {len(report.failures)} could not be added and will be retried"
            return message

        return await self._perform("process_recurring_bills", operation, describe)

    # =========================================================================
    # ACTIONS
    # =========================================================================

    async def _perform(
        self,
        action: str,
        operation: Callable[[str], Awaitable[Any]],
        describe: Union[str, Callable[[Any], str]],
    ) -> ActionOutcome:
        """
        Run one action for the signed-in user and map failures to outcomes.

        Errors that are not LedgerErrors are bugs and propagate.
        """
        user_id = self.user_id
        if not user_id:
            return ActionOutcome(success=False, message=SIGN_IN_MESSAGE)

        try:
            result = await operation(user_id)
        except ValidationError as e:
            self._activity.log_action_failed(user_id, action, e)
            return ActionOutcome(
                success=False,
                message=self._validator.get_user_friendly_summary(e),
                data=e.issues,
            )
        except TransactionConflictError as e:
            self._activity.log_action_failed(user_id, action, e)
            return ActionOutcome(success=False, message=RETRY_MESSAGE)
        except AccountNotFoundError as e:
            self._activity.log_action_failed(user_id, action, e)
            return ActionOutcome(
                success=False,
                message="Account not found. It may have been deleted.",
            )
        except GoalNotFoundError as e:
            self._activity.log_action_failed(user_id, action, e)
            return ActionOutcome(success=False, message="Savings goal not found.")
        except NotFoundError as e:
            self._activity.log_action_failed(user_id, action, e)
            return ActionOutcome(success=False, message=str(e))
        except LedgerError as e:
            self._activity.log_action_failed(user_id, action, e)
            return ActionOutcome(success=False, message=f"{RETRY_MESSAGE} ({e})")

        message = describe(result) if callable(describe) else describe
        return ActionOutcome(success=True, message=message, data=result)

    @staticmethod
    def _confirm(text: str) -> ActionOutcome:
        return ActionOutcome(success=False, message=text, requires_confirmation=True)

    # Accounts

    async def add_account(self, fields: Any) -> ActionOutcome:
        return await self._perform(
            "add_account",
            lambda user_id: self.accounts.create(user_id, fields),
            lambda account: f"Account {account.nickname} added",
        )

    async def set_balance(self, account_id: str, balance: Any) -> ActionOutcome:
        return await self._perform(
            "set_balance",
            lambda user_id: self.accounts.set_balance(user_id, account_id, balance),
            "Balance updated",
        )

    async def delete_account(self, account_id: str, confirmed: bool = False) -> ActionOutcome:
        if not confirmed:
            return self._confirm(CONFIRM_DELETE_ACCOUNT)
        return await self._perform(
            "delete_account",
            lambda user_id: self.accounts.delete(user_id, account_id),
            "Account deleted",
        )

    # Budget items and month budget

    async def add_budget_item(
        self,
        data: Any,
        category: Union[BudgetCategory, str],
    ) -> ActionOutcome:
        return await self._perform(
            "add_budget_item",
            lambda user_id: self.budget.add_budget_item(user_id, self._month_key, data, category),
            lambda item: f"{item.name} added",
        )

    async def delete_budget_item(self, item: BudgetItem, confirmed: bool = False) -> ActionOutcome:
        if not confirmed:
            return self._confirm(CONFIRM_DELETE_ITEM.format(name=item.name))
        return await self._perform(
            "delete_budget_item",
            lambda user_id: self.budget.delete_budget_item(user_id, self._month_key, item),
            lambda stored: f"{stored.name} deleted and reversed",
        )

    async def set_income(self, income: Union[Decimal, str, int]) -> ActionOutcome:
        return await self._perform(
            "set_income",
            lambda user_id: self.budget.set_income(user_id, self._month_key, income),
            "Income updated",
        )

    async def set_rule(self, rule: Union[BudgetRule, str]) -> ActionOutcome:
        return await self._perform(
            "set_rule",
            lambda user_id: self.budget.set_rule(user_id, self._month_key, rule),
            lambda budget: f"Budget rule set to {budget.rule.value}",
        )

    async def month_summary(self) -> ActionOutcome:
        return await self._perform(
            "month_summary",
            lambda user_id: self.budget.month_summary(user_id, self._month_key),
            "Summary ready",
        )

    # Recurring bills

    async def add_recurring_item(self, data: Any) -> ActionOutcome:
        return await self._perform(
            "add_recurring_item",
            lambda user_id: self.recurring.create_recurring_item(user_id, data),
            lambda item: f"{item.name} will be added every month on day {item.day_of_month}",
        )

    async def delete_recurring_item(self, recurring_id: str, confirmed: bool = False) -> ActionOutcome:
        if not confirmed:
            return self._confirm(CONFIRM_DELETE_RECURRING)
        return await self._perform(
            "delete_recurring_item",
            lambda user_id: self.recurring.delete_recurring_item(user_id, recurring_id),
            "Subscription stopped",
        )

    async def upcoming_bills(self, today: Optional[date] = None) -> ActionOutcome:
        return await self._perform(
            "upcoming_bills",
            lambda user_id: self.recurring.upcoming_bills(user_id, today or date.today()),
            lambda bills: f"{len(bills)} bill(s) due soon",
        )

    # Savings goals

    async def create_goal(self, data: Any) -> ActionOutcome:
        return await self._perform(
            "create_goal",
            lambda user_id: self.goals.create_goal(user_id, data),
            lambda goal: f"Goal {goal.name} created",
        )

    async def deposit(self, goal_id: str, amount: Any, account_id: Optional[str]) -> ActionOutcome:
        return await self._perform(
            "deposit",
            lambda user_id: self.goals.deposit(user_id, goal_id, amount, account_id),
            lambda deposit: f"Deposited {deposit.amount:.2f}",
        )

    async def delete_goal(self, goal_id: str, confirmed: bool = False) -> ActionOutcome:
        if not confirmed:
            return self._confirm(CONFIRM_DELETE_GOAL)
        return await self._perform(
            "delete_goal",
            lambda user_id: self.goals.delete_goal(user_id, goal_id),
            "Goal deleted",
        )


def _component_backends(
    accounts: Optional[AccountStore],
    budget: Optional[BudgetLedger],
    recurring: Optional[RecurringBillEngine],
    goals: Optional[SavingsGoalLedger],
) -> list[tuple[DocumentStore, LedgerPaths]]:
    """(store, paths) of every injected component."""
    backends = []
    if accounts is not None:
        backends.append((accounts.store, accounts.paths))
    for ledger in (budget, recurring, goals):
        if ledger is not None:
            backends.append((ledger.engine.store, ledger.engine.paths))
    return backends


def create_ledger_components(
    store: Optional[DocumentStore] = None,
    namespace: Optional[str] = None,
    activity_logger: Optional[ActivityLogger] = None,
) -> tuple[AccountStore, BudgetLedger, RecurringBillEngine, SavingsGoalLedger]:
    """
    Factory function to create the ledgers over one store.

    Args:
        store: Document store to use. Defaults to a fresh in-memory store.
        namespace: Path namespace. Defaults to the configured one.
        activity_logger: Shared activity logger.

    Returns:
        (accounts, budget, recurring, goals)
    """
    store = store or InMemoryDocumentStore()
    paths = LedgerPaths(namespace)
    engine = TransactionEngine(store, paths)
    activity_logger = activity_logger or ActivityLogger()
    validator = LedgerValidator()

    return (
        AccountStore(store, paths, validator, activity_logger),
        BudgetLedger(engine, validator, activity_logger),
        RecurringBillEngine(engine, validator, activity_logger),
        SavingsGoalLedger(engine, validator, activity_logger),
    )
