from decimal import Decimal

import pytest

from retailcore.money import format_currency, money_str, quantize, to_amount, to_decimal


@pytest.mark.parametrize(
    "value,expected",
    [
        ("12.50", Decimal("12.50")),
        (" 7 ", Decimal("7")),
        (3, Decimal("3")),
        (0.1, Decimal("0.1")),
        (Decimal("1.005"), Decimal("1.005")),
        (None, Decimal("0")),
        ("", Decimal("0")),
        ("abc", Decimal("0")),
        ("NaN", Decimal("0")),
        ("Infinity", Decimal("0")),
        (True, Decimal("0")),
    ],
)
def test_to_decimal(value, expected):
    assert to_decimal(value) == expected


def test_to_decimal_custom_default():
    assert to_decimal("nope", default=None) is None


def test_to_amount_clamps_negative():
    assert to_amount("-10") == Decimal("0")
    assert to_amount("10") == Decimal("10")


def test_quantize_half_up():
    assert quantize(Decimal("2821.505")) == Decimal("2821.51")
    assert quantize(Decimal("2821.5")) == Decimal("2821.50")
    assert money_str(Decimal("28471.5")) == "28471.50"
    assert money_str(None) is None


def test_format_currency():
    assert format_currency(Decimal("28471.5")) == "Rp 28.471,50"
    assert format_currency("1000000", places=0) == "Rp 1.000.000"
    assert format_currency(Decimal("-2500"), symbol="") == "-2.500,00"
