"""
Tests for the transaction engine and in-transaction balance adjustment.
"""

import asyncio
from decimal import Decimal

import pytest

from budget_ledger.engine import ReadPlan
from budget_ledger.ledger import AccountStore
from budget_ledger.services.store import AccountNotFoundError, TransactionOrderError


class TestRunAtomic:
    """Tests for read-all-then-write-all transactions."""

    @pytest.mark.asyncio
    async def test_adjusts_balance(self, engine, accounts, open_account, user_id):
        account = await open_account("1000")

        def write_plan(ctx):
            return AccountStore.adjust_balance(ctx, account.id, Decimal("-150"))

        new_balance = await engine.run_atomic(user_id, ReadPlan(accounts=[account.id]), write_plan)

        assert new_balance == Decimal("850")
        assert (await accounts.get(user_id, account.id)).balance == Decimal("850")

    @pytest.mark.asyncio
    async def test_adjustments_compose(self, engine, accounts, open_account, user_id):
        account = await open_account("100")

        def write_plan(ctx):
            AccountStore.adjust_balance(ctx, account.id, Decimal("-30"))
            AccountStore.adjust_balance(ctx, account.id, Decimal("-20"))
            return ctx.account(account.id).balance

        staged = await engine.run_atomic(user_id, ReadPlan(accounts=[account.id]), write_plan)

        assert staged == Decimal("50")
        assert (await accounts.get(user_id, account.id)).balance == Decimal("50")

    @pytest.mark.asyncio
    async def test_missing_required_account_applies_nothing(self, engine, store, paths, open_account, user_id):
        account = await open_account("1000")
        called = False

        def write_plan(ctx):
            nonlocal called
            called = True
            AccountStore.adjust_balance(ctx, account.id, Decimal("-1"))

        with pytest.raises(AccountNotFoundError) as exc_info:
            await engine.run_atomic(
                user_id,
                ReadPlan(accounts=[account.id, "missing"]),
                write_plan,
            )

        assert exc_info.value.account_id == "missing"
        assert not called
        snapshot = await store.get(paths.account(user_id, account.id))
        assert Decimal(snapshot.data["balance"]) == Decimal("1000")

    @pytest.mark.asyncio
    async def test_optional_account_may_be_missing(self, engine, user_id):
        def write_plan(ctx):
            return ctx.has_account("gone")

        assert await engine.run_atomic(
            user_id, ReadPlan(optional_accounts=["gone"]), write_plan
        ) is False

    @pytest.mark.asyncio
    async def test_adjusting_missing_optional_account_fails(self, engine, user_id):
        def write_plan(ctx):
            AccountStore.adjust_balance(ctx, "gone", Decimal("1"))

        with pytest.raises(AccountNotFoundError):
            await engine.run_atomic(user_id, ReadPlan(optional_accounts=["gone"]), write_plan)

    @pytest.mark.asyncio
    async def test_undeclared_account_is_an_order_error(self, engine, open_account, user_id):
        account = await open_account("10")

        def write_plan(ctx):
            AccountStore.adjust_balance(ctx, account.id, Decimal("1"))

        with pytest.raises(TransactionOrderError):
            await engine.run_atomic(user_id, ReadPlan(), write_plan)

    @pytest.mark.asyncio
    async def test_undeclared_document_is_an_order_error(self, engine, user_id):
        with pytest.raises(TransactionOrderError):
            await engine.run_atomic(user_id, ReadPlan(), lambda ctx: ctx.document("month"))

    @pytest.mark.asyncio
    async def test_async_write_plan_rejected(self, engine, user_id):
        async def write_plan(ctx):
            return None

        with pytest.raises(TransactionOrderError):
            await engine.run_atomic(user_id, ReadPlan(), write_plan)

    @pytest.mark.asyncio
    async def test_documents_are_read_and_written(self, engine, store, paths, user_id):
        path = paths.month_budget(user_id, "2026-03")

        def write_plan(ctx):
            assert not ctx.document("month").exists
            ctx.set(path, {"income": "0", "rule": "50/30/20"})

        await engine.run_atomic(user_id, ReadPlan(documents={"month": path}), write_plan)
        assert (await store.get(path)).data == {"income": "0", "rule": "50/30/20"}

    @pytest.mark.asyncio
    async def test_concurrent_debits_all_apply(self, engine, accounts, open_account, user_id):
        """Racing debits of one account conflict, retry, and all land."""
        account = await open_account("1000")

        def debit(ctx):
            AccountStore.adjust_balance(ctx, account.id, Decimal("-10"))

        await asyncio.gather(*(
            engine.run_atomic(user_id, ReadPlan(accounts=[account.id]), debit)
            for _ in range(5)
        ))

        assert (await accounts.get(user_id, account.id)).balance == Decimal("950")


class TestAccountStore:
    """Tests for account CRUD."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, accounts, open_account, user_id):
        account = await open_account("250.75", nickname="Salary")
        fetched = await accounts.get(user_id, account.id)
        assert fetched.nickname == "Salary"
        assert fetched.balance == Decimal("250.75")

    @pytest.mark.asyncio
    async def test_get_missing(self, accounts, user_id):
        with pytest.raises(AccountNotFoundError):
            await accounts.get(user_id, "nope")

    @pytest.mark.asyncio
    async def test_accounts_are_per_user(self, accounts, open_account, user_id):
        await open_account("1", owner="someone-else")
        assert await accounts.list_accounts(user_id) == []

    @pytest.mark.asyncio
    async def test_set_balance(self, accounts, open_account, user_id):
        account = await open_account("10")
        updated = await accounts.set_balance(user_id, account.id, "-5.25")
        assert updated.balance == Decimal("-5.25")

    @pytest.mark.asyncio
    async def test_set_balance_missing_account(self, accounts, user_id):
        with pytest.raises(AccountNotFoundError):
            await accounts.set_balance(user_id, "nope", "1")

    @pytest.mark.asyncio
    async def test_delete(self, accounts, open_account, user_id, activity):
        account = await open_account("10")
        assert await accounts.delete(user_id, account.id) is True
        assert await accounts.list_accounts(user_id) == []
        assert activity.types()[-1].value == "account_deleted"

    @pytest.mark.asyncio
    async def test_watch_accounts(self, accounts, open_account, user_id):
        stream = accounts.watch_accounts(user_id)
        assert await stream.__anext__() == []

        await open_account("10")
        listed = await asyncio.wait_for(stream.__anext__(), timeout=1)
        assert [a.balance for a in listed] == [Decimal("10")]

        await stream.aclose()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
