"""Money helpers.

Amounts are truncated toward zero to two decimal places on every entry
path (29.999 becomes 29.99, never 30.00). Percentages are the only
figures that get rounded.
"""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")
TENTH = Decimal("0.1")
ZERO = Decimal("0")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convert a raw number to Decimal without binary float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("Boolean is not a valid amount")
    try:
        # str() keeps 29.999 as 29.999 instead of 29.998999...
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")


def truncate_amount(value: Number) -> Decimal:
    """Truncate an amount toward zero to two decimal places."""
    amount = to_decimal(value)
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    try:
        return amount.quantize(CENT, rounding=ROUND_DOWN)
    except InvalidOperation:
        # Too many digits for the decimal context
        raise ValueError(f"Amount out of range: {value!r}")


def percent(part: Decimal, whole: Decimal) -> float:
    """part / whole as a percentage rounded half-up to one decimal.

    Returns 0 when whole is zero or missing.
    """
    if not whole:
        return 0.0
    value = (Decimal(part) / Decimal(whole)) * 100
    return float(value.quantize(TENTH, rounding=ROUND_HALF_UP))
