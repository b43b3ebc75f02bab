"""
Money helpers shared by pricing, shifts and settlement.

All amounts are Decimal. Values are quantized to two places only when they
are written to a column or rendered; pricing steps keep full precision.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")

# Outstanding balances at or below this are treated as settled.
PAID_EPSILON = Decimal("0.01")


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """
    Coerce a loose input (str, int, float, Decimal, None) to Decimal.

    Non-numeric, empty and non-finite inputs return `default`.
    Floats go through str() so 0.1 becomes Decimal("0.1").
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        return value if value.is_finite() else default
    if isinstance(value, float):
        value = str(value)
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default
    return result if result.is_finite() else default


def to_amount(value: Any) -> Decimal:
    """Boundary clamp for user-entered money: bad or negative input -> 0."""
    amount = to_decimal(value)
    return amount if amount > ZERO else ZERO


def quantize(value: Decimal) -> Decimal:
    """Round half-up to cents (persistence/display only)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value: Decimal | None) -> str | None:
    """JSON-safe string of a quantized amount."""
    if value is None:
        return None
    return str(quantize(value))


def format_currency(value: Any, symbol: str = "Rp", places: int = 2) -> str:
    """
    Format an amount id-ID style: "." thousands, "," decimals.

    >>> format_currency(Decimal("28471.5"))
    'Rp 28.471,50'
    """
    amount = to_decimal(value)
    exp = Decimal(1).scaleb(-places) if places > 0 else Decimal(1)
    amount = amount.quantize(exp, rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    text = f"{abs(amount):,.{places}f}"
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}{symbol} {text}" if symbol else f"{sign}{text}"
