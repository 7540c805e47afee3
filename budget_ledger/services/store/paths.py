"""
Document Paths

Every user's data lives under artifacts/{namespace}/users/{uid}. LedgerPaths
is the only place that knows the layout below that root.
"""

from typing import Optional

from budget_ledger.config import get_settings
from budget_ledger.models.ledger import parse_month_key
from budget_ledger.services.store.interface import join_path


class LedgerPaths:
    """Builds store paths for one namespace."""

    def __init__(self, namespace: Optional[str] = None):
        self.namespace = namespace or get_settings().ledger.namespace

    def user_root(self, user_id: str) -> str:
        return join_path("artifacts", self.namespace, "users", user_id)

    # Accounts
    def accounts(self, user_id: str) -> str:
        return join_path(self.user_root(user_id), "bank_accounts")

    def account(self, user_id: str, account_id: str) -> str:
        return join_path(self.accounts(user_id), account_id)

    # Month budgets and their items
    def month_budget(self, user_id: str, month_key: str) -> str:
        parse_month_key(month_key)
        return join_path(self.user_root(user_id), "budget", month_key)

    def items(self, user_id: str, month_key: str) -> str:
        return join_path(self.month_budget(user_id, month_key), "items")

    def item(self, user_id: str, month_key: str, item_id: str) -> str:
        return join_path(self.items(user_id, month_key), item_id)

    # Savings goals and deposits
    def goals(self, user_id: str) -> str:
        return join_path(self.user_root(user_id), "saving_goals")

    def goal(self, user_id: str, goal_id: str) -> str:
        return join_path(self.goals(user_id), goal_id)

    def deposits(self, user_id: str, goal_id: str) -> str:
        return join_path(self.goal(user_id, goal_id), "deposits")

    def deposit(self, user_id: str, goal_id: str, deposit_id: str) -> str:
        return join_path(self.deposits(user_id, goal_id), deposit_id)

    # Recurring items
    def recurring_items(self, user_id: str) -> str:
        return join_path(self.user_root(user_id), "recurring_items")

    def recurring_item(self, user_id: str, recurring_id: str) -> str:
        return join_path(self.recurring_items(user_id), recurring_id)
