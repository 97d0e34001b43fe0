"""
Decimal helpers for money, exchange rates and tax rates.

Amounts carry exactly 2 fractional digits, exchange rates 6 and tax
rates 4. All rounding is half-up.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Union

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

MAX_AMOUNT = Decimal("9999999999.99")
MAX_EXCHANGE_RATE = Decimal("999999.999999")


def to_decimal(value: Any) -> Decimal:
    """Convert ``value`` to ``Decimal`` without going through binary floats."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Not a decimal value: {value!r}") from e


def round2(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def decimal_places(value: Number) -> int:
    """Number of significant fractional digits (trailing zeros ignored)."""
    exponent = to_decimal(value).normalize().as_tuple().exponent
    return -exponent if isinstance(exponent, int) and exponent < 0 else 0


def within_tolerance(expected: Number, actual: Number, tolerance: Number = CENT) -> bool:
    return abs(to_decimal(expected) - to_decimal(actual)) <= to_decimal(tolerance)


def percentage(part: Number, whole: Number) -> Decimal:
    whole = to_decimal(whole)
    if whole == 0:
        return ZERO
    return round2(to_decimal(part) / whole * 100)
