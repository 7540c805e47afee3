"""
Tests for savings goals and deposits.
"""

import asyncio
from decimal import Decimal

import pytest

from budget_ledger.services.store import AccountNotFoundError, GoalNotFoundError
from budget_ledger.validation import ValidationError


async def new_goal(goals, user_id, total="1000", name="Holiday"):
    return await goals.create_goal(user_id, {"name": name, "total_amount": total})


class TestDeposits:
    """Tests for moving money into a goal."""

    @pytest.mark.asyncio
    async def test_deposit_moves_money(self, goals, accounts, open_account, user_id):
        account = await open_account("500")
        goal = await new_goal(goals, user_id)

        deposit = await goals.deposit(user_id, goal.id, "100", account.id)

        assert deposit.id
        assert deposit.amount == Decimal("100")
        assert await goals.current_saved(user_id, goal.id) == Decimal("100")
        assert (await accounts.get(user_id, account.id)).balance == Decimal("400")

    @pytest.mark.asyncio
    async def test_current_saved_is_sum_of_deposits(self, goals, open_account, user_id):
        account = await open_account("1000")
        goal = await new_goal(goals, user_id)

        for amount in ("10.50", "20", "0.25"):
            await goals.deposit(user_id, goal.id, amount, account.id)

        deposits = await goals.list_deposits(user_id, goal.id)
        assert len(deposits) == 3
        assert await goals.current_saved(user_id, goal.id) == sum(d.amount for d in deposits)
        assert await goals.current_saved(user_id, goal.id) == Decimal("30.75")

    @pytest.mark.asyncio
    async def test_missing_goal_changes_nothing(self, goals, accounts, open_account, user_id):
        account = await open_account("500")

        with pytest.raises(GoalNotFoundError) as exc_info:
            await goals.deposit(user_id, "ghost", "100", account.id)

        assert exc_info.value.goal_id == "ghost"
        assert (await accounts.get(user_id, account.id)).balance == Decimal("500")
        assert await goals.list_deposits(user_id, "ghost") == []

    @pytest.mark.asyncio
    async def test_missing_account_records_nothing(self, goals, user_id):
        goal = await new_goal(goals, user_id)

        with pytest.raises(AccountNotFoundError):
            await goals.deposit(user_id, goal.id, "100", "ghost")

        assert await goals.current_saved(user_id, goal.id) == Decimal("0")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount,account_id,field", [
        ("0", "acc", "amount"),
        ("-5", "acc", "amount"),
        ("abc", "acc", "amount"),
        ("10", None, "account_id"),
    ])
    async def test_invalid_deposit(self, goals, user_id, amount, account_id, field):
        goal = await new_goal(goals, user_id)
        with pytest.raises(ValidationError) as exc_info:
            await goals.deposit(user_id, goal.id, amount, account_id)
        assert field in exc_info.value.fields

    @pytest.mark.asyncio
    @pytest.mark.parametrize("goal_id,account_id,field", [
        ("", "acc", "goal_id"),
        ("g/1", "acc", "goal_id"),
        ("g1", "a/b", "account_id"),
    ])
    async def test_malformed_ids_rejected(self, goals, user_id, goal_id, account_id, field):
        with pytest.raises(ValidationError) as exc_info:
            await goals.deposit(user_id, goal_id, "10", account_id)
        assert exc_info.value.fields == [field]

    @pytest.mark.asyncio
    async def test_concurrent_deposits(self, goals, accounts, open_account, user_id):
        account = await open_account("1000")
        goal = await new_goal(goals, user_id)

        await asyncio.gather(*(
            goals.deposit(user_id, goal.id, "50", account.id) for _ in range(4)
        ))

        assert await goals.current_saved(user_id, goal.id) == Decimal("200")
        assert (await accounts.get(user_id, account.id)).balance == Decimal("800")

    @pytest.mark.asyncio
    async def test_logs_activity(self, goals, open_account, user_id, activity):
        account = await open_account("1000")
        goal = await new_goal(goals, user_id)
        await goals.deposit(user_id, goal.id, "5", account.id)
        assert activity.types()[-1].value == "goal_deposit_recorded"


class TestGoals:
    """Tests for goal lifecycle and progress."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, goals, user_id):
        goal = await goals.create_goal(user_id, {
            "name": "Car",
            "total_amount": "12000",
            "target_date": "2027-06-01",
        })
        fetched = await goals.get_goal(user_id, goal.id)
        assert fetched.name == "Car"
        assert fetched.total_amount == Decimal("12000")
        assert fetched.target_date.year == 2027

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data,field", [
        ({"name": "", "total_amount": "100"}, "name"),
        ({"name": "Car", "total_amount": "0"}, "total_amount"),
        ({"name": "Car"}, "total_amount"),
    ])
    async def test_create_validation(self, goals, user_id, data, field):
        with pytest.raises(ValidationError) as exc_info:
            await goals.create_goal(user_id, data)
        assert field in exc_info.value.fields

    @pytest.mark.asyncio
    async def test_get_missing(self, goals, user_id):
        with pytest.raises(GoalNotFoundError):
            await goals.get_goal(user_id, "ghost")

    @pytest.mark.asyncio
    async def test_delete_does_not_refund(self, goals, accounts, open_account, user_id):
        account = await open_account("500")
        goal = await new_goal(goals, user_id)
        await goals.deposit(user_id, goal.id, "200", account.id)

        assert await goals.delete_goal(user_id, goal.id) is True

        assert (await accounts.get(user_id, account.id)).balance == Decimal("300")
        assert await goals.list_goals(user_id) == []
        assert len(await goals.list_deposits(user_id, goal.id)) == 1

    @pytest.mark.asyncio
    async def test_delete_missing(self, goals, user_id):
        assert await goals.delete_goal(user_id, "ghost") is False

    @pytest.mark.asyncio
    async def test_progress(self, goals, open_account, user_id):
        account = await open_account("5000")
        goal = await new_goal(goals, user_id, total="400")
        await goals.deposit(user_id, goal.id, "100", account.id)

        progress = await goals.goal_progress(user_id, goal.id)
        assert progress.current_saved == Decimal("100")
        assert progress.percent == Decimal("25.0")
        assert progress.remaining == Decimal("300")

        await goals.deposit(user_id, goal.id, "500", account.id)
        progress = await goals.goal_progress(user_id, goal.id)
        assert progress.percent == Decimal("100.0")
        assert progress.remaining == Decimal("0")

    @pytest.mark.asyncio
    async def test_watch_current_saved(self, goals, open_account, user_id):
        account = await open_account("1000")
        goal = await new_goal(goals, user_id)

        stream = goals.watch_current_saved(user_id, goal.id)
        assert await stream.__anext__() == Decimal("0")

        await goals.deposit(user_id, goal.id, "75", account.id)
        assert await asyncio.wait_for(stream.__anext__(), timeout=1) == Decimal("75")

        await stream.aclose()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
