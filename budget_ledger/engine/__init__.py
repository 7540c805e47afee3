"""Transaction engine package."""

from budget_ledger.engine.atomic import (
    AtomicContext,
    ReadPlan,
    TransactionEngine,
)

__all__ = [
    "AtomicContext",
    "ReadPlan",
    "TransactionEngine",
]
