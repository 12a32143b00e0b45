from decimal import Decimal

from precision import currency_decimals, format_currency, round_to


def test_round_half_up_positive_and_negative():
    assert round_to(Decimal("0.125"), 2) == Decimal("0.13")
    assert round_to(Decimal("-0.125"), 2) == Decimal("-0.13")
    assert round_to(Decimal("2.5"), 0) == Decimal("3")
    assert round_to(Decimal("-2.5"), 0) == Decimal("-3")


def test_round_below_half_goes_down():
    assert round_to(Decimal("21.33333"), 2) == Decimal("21.33")
    assert round_to(Decimal("21.33333"), 4) == Decimal("21.3333")


def test_round_accepts_floats_without_binary_drift():
    # float 1.005 is stored as 1.00499999..., str() keeps the intended value
    assert round_to(1.005, 2) == Decimal("1.01")
    assert round_to(7, 2) == Decimal("7.00")


def test_currency_decimals():
    assert currency_decimals("USD") == 2
    assert currency_decimals("JPY") == 0
    assert currency_decimals("TWD") == 0
    # unknown codes use the default currency
    assert currency_decimals("XYZ") == 0


def test_format_currency():
    assert format_currency(Decimal("1234.5"), "USD") == "USD 1,234.50"
    assert format_currency(1000, "TWD") == "TWD 1,000"
    assert format_currency(Decimal("-12.5"), "EUR") == "EUR -12.50"


def test_format_currency_with_project_precision():
    assert format_currency(Decimal("0.4"), "TWD", 2) == "TWD 0.40"
    assert format_currency(Decimal("1234.5"), "USD", 0) == "USD 1,235"
