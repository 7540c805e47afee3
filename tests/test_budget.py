"""
Tests for the budget item ledger and month budgets.
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from budget_ledger.models import BudgetCategory, BudgetRule
from budget_ledger.services.store import AccountNotFoundError, NotFoundError, TransactionOrderError
from budget_ledger.validation import ValidationError


MONTH = "2026-03"


def expense(account_id, amount="150", name="Groceries", **extra):
    return {
        "name": name,
        "amount": amount,
        "date": "2026-03-10",
        "account_id": account_id,
        **extra,
    }


class TestAddBudgetItem:
    """Tests for add_budget_item."""

    @pytest.mark.asyncio
    async def test_expense_scenario(self, budget, accounts, open_account, user_id):
        """A at 1000, add 150 needs -> 850 with one item; delete -> 1000."""
        account = await open_account("1000")

        item = await budget.add_budget_item(user_id, MONTH, expense(account.id), "needs")

        assert (await accounts.get(user_id, account.id)).balance == Decimal("850")
        items = await budget.list_items(user_id, MONTH)
        assert len(items) == 1
        assert items[0].id == item.id
        assert items[0].name == "Groceries"
        assert items[0].amount == Decimal("150")
        assert items[0].category == BudgetCategory.NEEDS
        assert items[0].date == date(2026, 3, 10)
        assert items[0].account_id == account.id

        await budget.delete_budget_item(user_id, MONTH, item)

        assert (await accounts.get(user_id, account.id)).balance == Decimal("1000")
        assert await budget.list_items(user_id, MONTH) == []

    @pytest.mark.asyncio
    async def test_transfer_moves_money(self, budget, accounts, open_account, user_id):
        source = await open_account("1000", nickname="Checking")
        dest = await open_account("200", nickname="Savings")

        item = await budget.add_budget_item(
            user_id, MONTH,
            expense(source.id, amount="300", name="To savings", to_account_id=dest.id),
            BudgetCategory.SAVINGS,
        )

        source_after = (await accounts.get(user_id, source.id)).balance
        dest_after = (await accounts.get(user_id, dest.id)).balance
        assert source_after == Decimal("700")
        assert dest_after == Decimal("500")
        assert source_after + dest_after == Decimal("1200")
        assert item.is_transfer

        await budget.delete_budget_item(user_id, MONTH, item)
        assert (await accounts.get(user_id, source.id)).balance == Decimal("1000")
        assert (await accounts.get(user_id, dest.id)).balance == Decimal("200")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0.01", "19.99", "1000", "2500.50"])
    async def test_add_then_delete_restores_balance(self, budget, accounts, open_account, user_id, amount):
        account = await open_account("1000")
        item = await budget.add_budget_item(user_id, MONTH, expense(account.id, amount=amount), "wants")
        await budget.delete_budget_item(user_id, MONTH, item)
        assert (await accounts.get(user_id, account.id)).balance == Decimal("1000")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides,field", [
        ({"amount": "0"}, "amount"),
        ({"amount": None}, "amount"),
        ({"account_id": None}, "account_id"),
        ({"name": "   "}, "name"),
        ({"date": None}, "date"),
        ({"date": "not-a-date"}, "date"),
        ({"account_id": "a/b"}, "account_id"),
        ({"to_account_id": "x/y"}, "to_account_id"),
    ])
    async def test_invalid_input_rejected_before_store(
        self, budget, store, open_account, user_id, monkeypatch, overrides, field
    ):
        account = await open_account("1000")

        async def no_store_call(*args, **kwargs):
            raise AssertionError("store must not be called")

        monkeypatch.setattr(store, "run_transaction", no_store_call)

        with pytest.raises(ValidationError) as exc_info:
            await budget.add_budget_item(user_id, MONTH, {**expense(account.id), **overrides}, "needs")
        assert field in exc_info.value.fields

    @pytest.mark.asyncio
    async def test_invalid_category_rejected(self, budget, open_account, user_id):
        account = await open_account("1000")
        with pytest.raises(ValidationError):
            await budget.add_budget_item(user_id, MONTH, expense(account.id), "groceries")

    @pytest.mark.asyncio
    async def test_invalid_month_rejected(self, budget, open_account, user_id):
        account = await open_account("1000")
        with pytest.raises(ValidationError):
            await budget.add_budget_item(user_id, "2026-3", expense(account.id), "needs")

    @pytest.mark.asyncio
    async def test_missing_account_records_nothing(self, budget, user_id):
        with pytest.raises(AccountNotFoundError):
            await budget.add_budget_item(user_id, MONTH, expense("ghost"), "needs")
        assert await budget.list_items(user_id, MONTH) == []

    @pytest.mark.asyncio
    async def test_missing_transfer_destination_changes_nothing(self, budget, accounts, open_account, user_id):
        source = await open_account("1000")
        with pytest.raises(AccountNotFoundError):
            await budget.add_budget_item(
                user_id, MONTH, expense(source.id, to_account_id="ghost"), "savings"
            )
        assert (await accounts.get(user_id, source.id)).balance == Decimal("1000")
        assert await budget.list_items(user_id, MONTH) == []

    @pytest.mark.asyncio
    async def test_concurrent_adds_on_one_account(self, budget, accounts, open_account, user_id):
        account = await open_account("1000")

        await asyncio.gather(*(
            budget.add_budget_item(user_id, MONTH, expense(account.id, amount="100", name=f"Item {i}"), "wants")
            for i in range(4)
        ))

        assert (await accounts.get(user_id, account.id)).balance == Decimal("600")
        assert len(await budget.list_items(user_id, MONTH)) == 4

    @pytest.mark.asyncio
    async def test_logs_activity(self, budget, open_account, user_id, activity):
        account = await open_account("1000")
        await budget.add_budget_item(user_id, MONTH, expense(account.id), "needs")
        assert activity.types()[-1].value == "budget_item_added"


class TestDeleteBudgetItem:
    """Tests for delete_budget_item."""

    @pytest.mark.asyncio
    async def test_delete_twice_reverses_once(self, budget, accounts, open_account, user_id):
        account = await open_account("1000")
        item = await budget.add_budget_item(user_id, MONTH, expense(account.id), "needs")

        await budget.delete_budget_item(user_id, MONTH, item)
        with pytest.raises(NotFoundError):
            await budget.delete_budget_item(user_id, MONTH, item)

        assert (await accounts.get(user_id, account.id)).balance == Decimal("1000")

    @pytest.mark.asyncio
    async def test_delete_by_id(self, budget, accounts, open_account, user_id):
        account = await open_account("1000")
        item = await budget.add_budget_item(user_id, MONTH, expense(account.id), "needs")

        stored = await budget.delete_budget_item(user_id, MONTH, item.id)

        assert stored.amount == Decimal("150")
        assert (await accounts.get(user_id, account.id)).balance == Decimal("1000")

    @pytest.mark.asyncio
    async def test_delete_tolerates_deleted_account(self, budget, accounts, open_account, user_id):
        source = await open_account("1000")
        dest = await open_account("0")
        item = await budget.add_budget_item(
            user_id, MONTH, expense(source.id, amount="100", to_account_id=dest.id), "savings"
        )
        await accounts.delete(user_id, source.id)

        await budget.delete_budget_item(user_id, MONTH, item)

        assert await budget.list_items(user_id, MONTH) == []
        assert (await accounts.get(user_id, dest.id)).balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_reversal_uses_stored_item(self, budget, accounts, open_account, user_id):
        account = await open_account("1000")
        item = await budget.add_budget_item(user_id, MONTH, expense(account.id), "needs")

        tampered = item.model_copy(update={"amount": Decimal("999")})
        await budget.delete_budget_item(user_id, MONTH, tampered)

        assert (await accounts.get(user_id, account.id)).balance == Decimal("1000")

    @pytest.mark.asyncio
    async def test_copy_naming_other_account_applies_nothing(self, budget, accounts, open_account, user_id):
        """A stale copy pointing at the wrong account never skips the reversal."""
        account = await open_account("1000")
        other = await open_account("500", nickname="Other")
        item = await budget.add_budget_item(user_id, MONTH, expense(account.id), "needs")

        stale = item.model_copy(update={"account_id": other.id})
        with pytest.raises(TransactionOrderError):
            await budget.delete_budget_item(user_id, MONTH, stale)

        assert (await accounts.get(user_id, account.id)).balance == Decimal("850")
        assert (await accounts.get(user_id, other.id)).balance == Decimal("500")
        assert len(await budget.list_items(user_id, MONTH)) == 1

        await budget.delete_budget_item(user_id, MONTH, item.id)
        assert (await accounts.get(user_id, account.id)).balance == Decimal("1000")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("item_id", ["", "a/b"])
    async def test_malformed_item_id(self, budget, user_id, item_id):
        with pytest.raises(ValidationError) as exc_info:
            await budget.delete_budget_item(user_id, MONTH, item_id)
        assert exc_info.value.fields == ["item_id"]


class TestMonthBudget:
    """Tests for income, rule and summaries."""

    @pytest.mark.asyncio
    async def test_defaults_without_writing(self, budget, store, paths, user_id):
        month = await budget.get_month_budget(user_id, MONTH)
        assert month.income == Decimal("0")
        assert month.rule == BudgetRule.FIFTY_THIRTY_TWENTY
        assert not (await store.get(paths.month_budget(user_id, MONTH))).exists

    @pytest.mark.asyncio
    async def test_set_income_creates_document(self, budget, store, paths, user_id):
        month = await budget.set_income(user_id, MONTH, "4000")
        assert month.income == Decimal("4000")

        stored = (await store.get(paths.month_budget(user_id, MONTH))).data
        assert stored == {"income": "4000", "rule": "50/30/20"}

    @pytest.mark.asyncio
    async def test_set_rule_keeps_income(self, budget, user_id):
        await budget.set_income(user_id, MONTH, "3000")
        month = await budget.set_rule(user_id, MONTH, "70/20/10")
        assert month.rule == BudgetRule.SEVENTY_TWENTY_TEN
        assert month.income == Decimal("3000")

    @pytest.mark.asyncio
    async def test_invalid_rule(self, budget, user_id):
        with pytest.raises(ValidationError):
            await budget.set_rule(user_id, MONTH, "60/40")

    @pytest.mark.asyncio
    async def test_negative_income(self, budget, user_id):
        with pytest.raises(ValidationError):
            await budget.set_income(user_id, MONTH, "-10")

    @pytest.mark.asyncio
    async def test_month_summary(self, budget, open_account, user_id):
        account = await open_account("10000")
        await budget.set_income(user_id, MONTH, "4000")
        await budget.add_budget_item(user_id, MONTH, expense(account.id, amount="1500", name="Rent"), "needs")
        await budget.add_budget_item(user_id, MONTH, expense(account.id, amount="1300", name="Trip"), "wants")
        await budget.add_budget_item(user_id, MONTH, expense(account.id, amount="4000", name="Salary"), "income")

        summary = await budget.month_summary(user_id, MONTH)

        assert summary.total_spent == Decimal("2800")
        assert summary.saved == Decimal("1200")
        assert summary.savings_rate == Decimal("30.0")
        needs = summary.category(BudgetCategory.NEEDS)
        assert needs.limit == Decimal("2000")
        assert needs.remaining == Decimal("500")
        assert summary.over_budget_categories == [BudgetCategory.WANTS]
        assert summary.category(BudgetCategory.INCOME) is None
        assert summary.category(BudgetCategory.SAVINGS).spent == Decimal("0")

    @pytest.mark.asyncio
    async def test_items_listed_by_date(self, budget, open_account, user_id):
        account = await open_account("1000")
        for day in ("2026-03-20", "2026-03-02", "2026-03-11"):
            await budget.add_budget_item(
                user_id, MONTH, {**expense(account.id, amount="1"), "date": day}, "needs"
            )

        items = await budget.list_items(user_id, MONTH)
        assert [i.date.day for i in items] == [2, 11, 20]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
