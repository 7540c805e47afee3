"""
Savings Goal Ledger

Goals are targets; deposits are the record of money moved toward them.

- A deposit debits its source account and records the deposit in the same
  atomic transaction
- The amount saved is never stored: it is always the live sum of the
  goal's deposits
- Deleting a goal deletes only the goal document; deposits and the balances
  they debited are NOT refunded
"""

from decimal import Decimal
from typing import Any, AsyncIterator, Optional, Union

from budget_ledger.activity import ActivityLogger
from budget_ledger.engine import AtomicContext, ReadPlan, TransactionEngine
from budget_ledger.ledger.accounts import AccountStore
from budget_ledger.models.activity import ActivityEventBuilder
from budget_ledger.models.inputs import GoalInput
from budget_ledger.models.ledger import Deposit, SavingsGoal
from budget_ledger.models.reports import GoalProgress
from budget_ledger.services.store import DocumentSnapshot, GoalNotFoundError
from budget_ledger.validation import LedgerValidator


def _sum_deposits(snapshots: list[DocumentSnapshot]) -> Decimal:
    return sum(
        (Deposit.from_document(s.id, s.data).amount for s in snapshots),
        Decimal("0"),
    )


class SavingsGoalLedger:
    """Savings goals and their deposit sub-ledgers."""

    def __init__(
        self,
        engine: TransactionEngine,
        validator: Optional[LedgerValidator] = None,
        activity_logger: Optional[ActivityLogger] = None,
    ):
        self._engine = engine
        self._store = engine.store
        self._paths = engine.paths
        self._validator = validator or LedgerValidator()
        self._activity = activity_logger or ActivityLogger()

    @property
    def engine(self) -> TransactionEngine:
        return self._engine

    async def create_goal(
        self,
        user_id: str,
        data: Union[GoalInput, dict[str, Any]],
    ) -> SavingsGoal:
        """
        Raises:
            ValidationError: Missing name or non-positive target amount
        """
        fields = self._validator.validate_goal(data)
        goal = SavingsGoal(
            name=fields.name,
            total_amount=fields.total_amount,
            target_date=fields.target_date,
        )
        goal.id = await self._store.add(self._paths.goals(user_id), goal.to_document())
        self._activity.log(ActivityEventBuilder.goal_created(user_id, goal))
        return goal

    async def get_goal(self, user_id: str, goal_id: str) -> SavingsGoal:
        goal_id = self._validator.validate_id(goal_id, "goal_id")
        snapshot = await self._store.get(self._paths.goal(user_id, goal_id))
        if not snapshot.exists:
            raise GoalNotFoundError(goal_id)
        return SavingsGoal.from_document(goal_id, snapshot.data)

    async def list_goals(self, user_id: str) -> list[SavingsGoal]:
        snapshots = await self._store.list_documents(
            self._paths.goals(user_id),
            order_by="created_at",
        )
        return [SavingsGoal.from_document(s.id, s.data) for s in snapshots]

    async def deposit(
        self,
        user_id: str,
        goal_id: str,
        amount: Any,
        account_id: Optional[str],
    ) -> Deposit:
        """
        Move money from an account into a goal.

        Returns:
            The recorded deposit

        Raises:
            ValidationError: Non-positive amount, no account or a malformed id
                             (no store call made)
            AccountNotFoundError: The account does not exist (nothing applied)
            GoalNotFoundError: The goal does not exist (nothing applied)
            TransactionConflictError: Retries ran out (nothing applied)
        """
        goal_id = self._validator.validate_id(goal_id, "goal_id")
        amount = self._validator.validate_deposit(amount, account_id)
        deposit = Deposit(amount=amount, account_id=account_id)
        deposits_path = self._paths.deposits(user_id, goal_id)

        def write_plan(ctx: AtomicContext) -> str:
            if not ctx.document("goal").exists:
                raise GoalNotFoundError(goal_id)
            AccountStore.adjust_balance(ctx, account_id, -amount)
            return ctx.create(deposits_path, deposit.to_document())

        deposit.id = await self._engine.run_atomic(
            user_id,
            ReadPlan(
                accounts=[account_id],
                documents={"goal": self._paths.goal(user_id, goal_id)},
            ),
            write_plan,
        )

        self._activity.log(ActivityEventBuilder.goal_deposit_recorded(user_id, goal_id, deposit))
        return deposit

    async def list_deposits(self, user_id: str, goal_id: str) -> list[Deposit]:
        goal_id = self._validator.validate_id(goal_id, "goal_id")
        snapshots = await self._store.list_documents(
            self._paths.deposits(user_id, goal_id),
            order_by="date",
        )
        return [Deposit.from_document(s.id, s.data) for s in snapshots]

    async def current_saved(self, user_id: str, goal_id: str) -> Decimal:
        """Sum of every deposit recorded for the goal, read fresh each call."""
        goal_id = self._validator.validate_id(goal_id, "goal_id")
        snapshots = await self._store.list_documents(self._paths.deposits(user_id, goal_id))
        return _sum_deposits(snapshots)

    async def watch_current_saved(self, user_id: str, goal_id: str) -> AsyncIterator[Decimal]:
        """Live amount saved, re-emitted whenever the goal's deposits change."""
        goal_id = self._validator.validate_id(goal_id, "goal_id")
        async for snapshots in self._store.subscribe(self._paths.deposits(user_id, goal_id)):
            yield _sum_deposits(snapshots)

    async def goal_progress(self, user_id: str, goal_id: str) -> GoalProgress:
        goal = await self.get_goal(user_id, goal_id)
        return GoalProgress(
            goal_id=goal.id,
            name=goal.name,
            total_amount=goal.total_amount,
            current_saved=await self.current_saved(user_id, goal_id),
        )

    async def delete_goal(self, user_id: str, goal_id: str) -> bool:
        """
        Delete a goal. Money already deposited is NOT refunded.

        Returns:
            True if a goal was deleted
        """
        goal_id = self._validator.validate_id(goal_id, "goal_id")
        deleted = await self._store.delete(self._paths.goal(user_id, goal_id))
        if deleted:
            self._activity.log(ActivityEventBuilder.goal_deleted(user_id, goal_id))
        return deleted
