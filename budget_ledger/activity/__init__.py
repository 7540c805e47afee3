"""Activity logging package."""

from budget_ledger.activity.logger import ActivityLogger

__all__ = ["ActivityLogger"]
