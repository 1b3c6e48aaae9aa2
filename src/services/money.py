"""
Fixed-point helpers for money and percentage rates.

Amounts are quantized to cents with banker's rounding (half-to-even) so
repeated aggregation does not drift. Rates are percentages with two decimals;
the fraction used for multiplication keeps four decimals.
"""

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")
RATE_STEP = Decimal("0.01")
FRACTION_STEP = Decimal("0.0001")
HUNDRED = Decimal("100")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, str]


def to_decimal(value: Number) -> Decimal:
    """Convert to Decimal without going through float.

    Floats are rejected; their binary representation is exactly what the
    fixed-point arithmetic avoids.
    """
    if isinstance(value, float):
        raise TypeError("float amounts are not accepted, pass Decimal or str")
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Not a number: {value!r}") from e


def quantize_money(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_EVEN)


def quantize_rate(value: Number) -> Decimal:
    return to_decimal(value).quantize(RATE_STEP, rounding=ROUND_HALF_EVEN)


def rate_fraction(rate: Number) -> Decimal:
    """Percentage to multiplier at four-decimal precision (4.5 -> 0.0450)."""
    return (to_decimal(rate) / HUNDRED).quantize(FRACTION_STEP, rounding=ROUND_HALF_EVEN)


def decimal_places(value: Decimal) -> int:
    exponent = value.as_tuple().exponent
    return -exponent if isinstance(exponent, int) and exponent < 0 else 0
