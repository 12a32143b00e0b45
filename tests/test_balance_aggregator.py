from decimal import Decimal

from balance_aggregator import BalanceAggregator
from conftest import make_expense
from models import Expense
from share_allocator import ShareAllocator


def _balances(result):
    return {member_id: b.balance for member_id, b in result.items()}


def test_single_currency_equal_split(rates):
    expenses = [make_expense("e1", 900, "alice", {"alice": 300, "bob": 300, "carol": 300})]
    result = BalanceAggregator.aggregate(expenses, "TWD", rates, None, 2)

    assert result["alice"].paid == Decimal("900")
    assert result["alice"].share == Decimal("300")
    assert _balances(result) == {
        "alice": Decimal("600"),
        "bob": Decimal("-300"),
        "carol": Decimal("-300"),
    }


def test_roster_members_without_activity_are_kept(rates, members):
    expenses = [make_expense("e1", 100, "alice", {"alice": 50, "bob": 50})]
    result = BalanceAggregator.aggregate(expenses, "TWD", rates, None, 2, members=members)

    assert list(result) == ["alice", "bob", "carol", "dave"]
    assert result["dave"].balance == 0
    assert result["dave"].paid == 0
    assert result["dave"].name == "Dave"


def test_foreign_expense_is_converted(rates):
    expenses = [make_expense("e1", 1500, "bob", {"bob": 750, "carol": 750}, currency="JPY")]
    result = BalanceAggregator.aggregate(expenses, "TWD", rates, None, 2)

    assert result["bob"].paid == Decimal("320.00")
    assert result["bob"].share == Decimal("160.00")
    assert result["carol"].share == Decimal("160.00")
    assert _balances(result) == {"bob": Decimal("160.00"), "carol": Decimal("-160.00")}


def test_custom_rate_override(rates):
    expenses = [make_expense("e1", 1500, "bob", {"bob": 750, "carol": 750}, currency="JPY")]
    result = BalanceAggregator.aggregate(expenses, "TWD", rates, {"JPY": Decimal("0.2")}, 2)

    assert result["bob"].paid == Decimal("300.00")
    assert result["carol"].balance == Decimal("-150.00")


def test_shares_follow_converted_total(rates):
    # 100 USD -> 3200 TWD; uneven shares must still add up after conversion
    expenses = [
        make_expense(
            "e1", 100, "alice", {"alice": "33.33", "bob": "33.33", "carol": "33.34"}, currency="USD"
        )
    ]
    result = BalanceAggregator.aggregate(expenses, "TWD", rates, None, 0)

    assert result["alice"].paid == Decimal("3200")
    # 1067 * 3 overshoots by one; the first participant absorbs it
    assert result["alice"].share == Decimal("1066")
    assert result["bob"].share == Decimal("1067")
    assert result["carol"].share == Decimal("1067")
    assert _balances(result) == {
        "alice": Decimal("2134"),
        "bob": Decimal("-1067"),
        "carol": Decimal("-1067"),
    }
    assert sum(_balances(result).values()) == 0


def test_many_members_foreign_equal_split_is_conserved(rates):
    member_ids = [f"m{i}" for i in range(9)]
    shares = ShareAllocator.allocate_equal(Decimal("100"), member_ids, 2)
    expense = Expense(id="e1", amount=Decimal("100"), currency="JPY", paid_by="m0", shares=shares)

    result = BalanceAggregator.aggregate([expense], "TWD", rates, None, 2)

    assert result["m0"].paid == Decimal("21.33")
    assert result["m0"].share == Decimal("2.37")
    assert result["m0"].balance == Decimal("18.96")
    assert all(result[m].balance == Decimal("-2.37") for m in member_ids[1:])
    assert sum(_balances(result).values()) == 0
    assert BalanceAggregator.is_conserved(_balances(result))


def test_deleted_and_zero_expenses(rates):
    expenses = [
        make_expense("e1", 100, "alice", {"alice": 50, "bob": 50}, deleted=True),
        make_expense("e2", 0, "bob", {"alice": 0, "bob": 0}),
    ]
    result = BalanceAggregator.aggregate(expenses, "TWD", rates, None, 2)

    assert _balances(result) == {"bob": Decimal("0"), "alice": Decimal("0")}


def test_balances_are_conserved_across_currencies(rates):
    expenses = [
        make_expense("e1", 1000, "alice", {"alice": "333.34", "bob": "333.33", "carol": "333.33"}),
        make_expense("e2", 4500, "bob", {"bob": 1500, "carol": 1500, "dave": 1500}, currency="JPY"),
        make_expense("e3", "19.99", "dave", {"alice": 10, "dave": "9.99"}, currency="USD"),
        make_expense("e4", "75.5", "carol", {"alice": "25.5", "bob": 25, "carol": 25}, currency="EUR"),
    ]
    result = BalanceAggregator.aggregate(expenses, "TWD", rates, {"EUR": Decimal("35.1")}, 2)

    total = sum(_balances(result).values())
    assert abs(total) <= Decimal("0.01")
    assert BalanceAggregator.is_conserved(_balances(result))


def test_summarize(rates):
    expenses = [
        make_expense("e1", 900, "alice", {"alice": 300, "bob": 300, "carol": 300}),
        make_expense("e2", 1500, "bob", {"bob": 750, "carol": 750}, currency="JPY"),
        make_expense("e3", 50, "bob", {"bob": 50}, deleted=True),
    ]
    summary = BalanceAggregator.summarize(expenses, "TWD", rates, None, 2)

    assert summary.total_expenses == 2
    assert summary.total_amount == Decimal("1220.00")
    assert summary.total_shared == Decimal("1220.00")
    assert summary.is_balanced


def test_is_conserved_tolerance():
    assert BalanceAggregator.is_conserved({"A": Decimal("1"), "B": Decimal("-1")})
    assert BalanceAggregator.is_conserved({"A": Decimal("1.01"), "B": Decimal("-1")})
    assert not BalanceAggregator.is_conserved({"A": Decimal("1.02"), "B": Decimal("-1")})
    assert not BalanceAggregator.is_conserved({"A": Decimal("5"), "B": Decimal("-1")})
    # whole-unit balances get no extra slack
    assert not BalanceAggregator.is_conserved({"A": 1, "B": 0, "C": 0})
