"""
Tests for commodities, amounts, balances and price lookups.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st
from ledgerlab.core.amount import (
    Amount,
    Annotation,
    Balance,
    CommodityPool,
    KeepDetails,
    market_value,
)
from ledgerlab.core.errors import CommodityError, ValueTypeError
from ledgerlab.core.prices import exchange_rate


@pytest.fixture
def pool() -> CommodityPool:
    return CommodityPool()


class TestAmountParsing:
    """Parsing and display of amounts."""

    @pytest.mark.parametrize(
        "text, quantity, symbol",
        [
            ("$10", Decimal("10"), "$"),
            ("$-15", Decimal("-15"), "$"),
            ("-$15", Decimal("-15"), "$"),
            ("12.50 EUR", Decimal("12.50"), "EUR"),
            ("3 AAPL", Decimal("3"), "AAPL"),
            ("1,250.00 EUR", Decimal("1250.00"), "EUR"),
            ("42", Decimal("42"), None),
        ],
    )
    def test_parse(self, pool, text, quantity, symbol):
        amount = Amount.parse(text, pool)
        assert amount.quantity == quantity
        assert (amount.commodity.symbol if amount.commodity else None) == symbol

    @pytest.mark.parametrize("text", ["", "abc", "$10 EUR", "1..2"])
    def test_parse_rejects_garbage(self, pool, text):
        with pytest.raises(ValueTypeError):
            Amount.parse(text, pool)

    def test_display_uses_learned_precision(self, pool):
        Amount.parse("$1.25", pool)
        assert str(Amount.parse("$10", pool)) == "$10.00"
        assert str(Amount.parse("-3 AAPL", pool)) == "-3 AAPL"

    def test_bare_number_display(self):
        assert str(Amount(Decimal("2.50"))) == "2.5"
        assert str(Amount(0)) == "0"

    def test_computed_amounts_leave_precision_alone(self, pool):
        third = Amount.parse("$10", pool) / 3
        assert str(third) == "$3"
        assert pool.find("$").precision == 0


class TestAmountArithmetic:
    """Combining amounts and balances."""

    def test_same_commodity_adds(self, pool):
        total = Amount.parse("$10", pool) + Amount.parse("$5", pool)
        assert isinstance(total, Amount)
        assert total.quantity == 15

    def test_different_commodities_make_balance(self, pool):
        total = Amount.parse("$10", pool) + Amount.parse("5 EUR", pool)
        assert isinstance(total, Balance)
        assert [str(a) for a in total.amounts] == ["$10", "5 EUR"]

    def test_zero_components_dropped(self, pool):
        balance = Balance([Amount.parse("$10", pool), Amount.parse("$-10", pool)])
        assert balance.is_zero()
        assert str(balance) == "0"
        assert balance == 0

    def test_multiply_and_divide(self, pool):
        amount = Amount.parse("$10", pool)
        assert (amount * 3).quantity == 30
        assert (amount / 4).quantity == Decimal("2.5")
        with pytest.raises(ValueTypeError, match="Divide by zero"):
            amount / 0
        with pytest.raises(ValueTypeError):
            amount * Amount.parse("2 EUR", pool)

    def test_compare_across_commodities_fails(self, pool):
        with pytest.raises(ValueTypeError):
            Amount.parse("$1", pool) < Amount.parse("1 EUR", pool)

    def test_zero_amounts_equal(self, pool):
        assert Amount.parse("$0", pool) == Amount(0)
        assert Amount.parse("$0", pool) == Amount.parse("0 EUR", pool)


class TestAnnotations:
    """Lot details and what survives stripping."""

    def test_strip_drops_everything_by_default(self, pool):
        lot = Annotation(price=Amount.parse("$100", pool), date=date(2024, 1, 1), tag="a")
        amount = Amount(2, pool.find_or_create("AAPL"), lot)
        assert amount.strip_annotations().annotation is None

    def test_keep_details_selects_parts(self, pool):
        lot = Annotation(price=Amount.parse("$100", pool), date=date(2024, 1, 1), tag="a")
        amount = Amount(2, pool.find_or_create("AAPL"), lot)
        kept = amount.strip_annotations(KeepDetails(keep_date=True)).annotation
        assert kept == Annotation(date=date(2024, 1, 1))
        assert KeepDetails(True, True, True).keep_all()

    def test_annotated_amounts_are_separate_balance_lines(self, pool):
        aapl = pool.find_or_create("AAPL")
        plain = Amount(1, aapl)
        lot = Amount(1, aapl, Annotation(tag="x"))
        assert len(Balance([plain, lot])) == 2


class TestValuation:
    """Price history lookups and market values."""

    def test_latest_quote_at_or_before(self, pool):
        aapl = pool.find_or_create("AAPL")
        aapl.prices.add(date(2024, 1, 1), Amount.parse("$100", pool))
        aapl.prices.add(date(2024, 2, 1), Amount.parse("$120", pool))
        amount = Amount(2, aapl)

        assert amount.value(date(2024, 1, 15)).quantity == 200
        assert amount.value(date(2024, 3, 1)).quantity == 240
        assert amount.value(date(2023, 12, 31)) is None

    def test_inverse_rate(self, pool):
        usd = pool.find_or_create("$")
        eur = pool.find_or_create("EUR")
        eur.prices.add(date(2024, 1, 1), Amount(2, usd))
        assert exchange_rate(usd, eur) == Decimal("0.5")
        assert exchange_rate(usd, usd) == 1

    def test_market_value_without_path(self, pool):
        amount = Amount.parse("5 XYZ", pool)
        assert market_value(amount) is amount
        with pytest.raises(CommodityError):
            market_value(amount, target=pool.find_or_create("$"))


quantities = st.decimals(min_value=-10_000, max_value=10_000, places=2, allow_nan=False)


@given(st.lists(st.tuples(quantities, st.sampled_from(["$", "EUR", "AAPL"])), max_size=12))
def test_balance_is_order_independent(items):
    """Adding the same amounts in any order gives the same balance."""
    pool = CommodityPool()
    amounts = [Amount(q, pool.find_or_create(s)) for q, s in items]
    forward = Balance(amounts)
    backward = Balance(list(reversed(amounts)))
    assert forward == backward
    assert (forward - backward).is_zero()
