"""
Shared fixtures for Budget Ledger tests.

Everything runs against the in-memory store with zero backoff, so conflict
retries are real but instant. No test touches the network.
"""

from datetime import date
from typing import Callable, Optional

import pytest

from budget_ledger.activity import ActivityLogger
from budget_ledger.config import LedgerSettings, StoreSettings
from budget_ledger.engine import TransactionEngine
from budget_ledger.ledger import (
    AccountStore,
    BudgetLedger,
    RecurringBillEngine,
    SavingsGoalLedger,
)
from budget_ledger.models.activity import ActivityEvent, ActivityEventType
from budget_ledger.orchestrator import BudgetSession
from budget_ledger.services.auth import AuthError, AuthListener, AuthProvider
from budget_ledger.services.store import InMemoryDocumentStore, LedgerPaths
from budget_ledger.validation import LedgerValidator


USER_ID = "user-1"


class RecordingActivityLogger(ActivityLogger):
    """Activity logger that also keeps every event for assertions."""

    def __init__(self):
        super().__init__()
        self.events: list[ActivityEvent] = []

    def log(self, event: ActivityEvent) -> None:
        self.events.append(event)
        super().log(event)

    def types(self) -> list[ActivityEventType]:
        return [event.event_type for event in self.events]


class FakeAuth(AuthProvider):
    """In-memory identity provider."""

    def __init__(self):
        self._users: dict[str, tuple[str, str]] = {}
        self._current: Optional[str] = None
        self._listeners: list[AuthListener] = []

    def current_user_id(self) -> Optional[str]:
        return self._current

    async def sign_up(self, email: str, password: str) -> str:
        if email in self._users:
            raise AuthError("Email already registered")
        user_id = f"uid-{len(self._users) + 1}"
        self._users[email] = (password, user_id)
        self._set_user(user_id)
        return user_id

    async def sign_in(self, email: str, password: str) -> str:
        stored = self._users.get(email)
        if stored is None or stored[0] != password:
            raise AuthError("Invalid email or password")
        self._set_user(stored[1])
        return stored[1]

    async def sign_out(self) -> None:
        self._set_user(None)

    def on_auth_state_changed(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _set_user(self, user_id: Optional[str]) -> None:
        self._current = user_id
        for listener in list(self._listeners):
            listener(user_id)


@pytest.fixture
def user_id() -> str:
    return USER_ID


@pytest.fixture
def store_settings() -> StoreSettings:
    return StoreSettings(max_attempts=10, wait_multiplier=0, wait_min=0, wait_max=0)


@pytest.fixture
def ledger_settings() -> LedgerSettings:
    return LedgerSettings(
        namespace="test-ledger",
        default_rule="50/30/20",
        recurring_marker="[Auto]",
        upcoming_window_days=7,
    )


@pytest.fixture
def store(store_settings) -> InMemoryDocumentStore:
    return InMemoryDocumentStore(store_settings)


@pytest.fixture
def paths(ledger_settings) -> LedgerPaths:
    return LedgerPaths(ledger_settings.namespace)


@pytest.fixture
def engine(store, paths) -> TransactionEngine:
    return TransactionEngine(store, paths)


@pytest.fixture
def activity() -> RecordingActivityLogger:
    return RecordingActivityLogger()


@pytest.fixture
def validator() -> LedgerValidator:
    return LedgerValidator()


@pytest.fixture
def accounts(store, paths, validator, activity) -> AccountStore:
    return AccountStore(store, paths, validator, activity)


@pytest.fixture
def budget(engine, validator, activity, ledger_settings) -> BudgetLedger:
    return BudgetLedger(engine, validator, activity, ledger_settings)


@pytest.fixture
def recurring(engine, validator, activity, ledger_settings) -> RecurringBillEngine:
    return RecurringBillEngine(engine, validator, activity, ledger_settings)


@pytest.fixture
def goals(engine, validator, activity) -> SavingsGoalLedger:
    return SavingsGoalLedger(engine, validator, activity)


@pytest.fixture
def open_account(accounts, user_id):
    """Async factory creating an account for the default user."""

    async def _open(balance="1000", nickname="Main", owner: Optional[str] = None):
        return await accounts.create(owner or user_id, {
            "bank_name": "Test Bank",
            "nickname": nickname,
            "balance": balance,
        })

    return _open


@pytest.fixture
def auth() -> FakeAuth:
    return FakeAuth()


@pytest.fixture
def session(auth, accounts, budget, recurring, goals, validator, activity) -> BudgetSession:
    return BudgetSession(
        auth,
        accounts=accounts,
        budget=budget,
        recurring=recurring,
        goals=goals,
        validator=validator,
        activity_logger=activity,
        today=date(2026, 3, 3),
    )
