# Overview: Decimal helpers for money and quantities.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

MONEY_PLACES = Decimal("0.01")
QUANTITY_PLACES = Decimal("0.001")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """Convert ints, strings and Decimals to Decimal; floats go through str()."""
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, float):
        value = str(value)
    try:
        result = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError(f"not a number: {value!r}")
    # NaN and Infinity parse fine but break quantize and comparisons
    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result


def money(value) -> Decimal:
    return to_decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def quantity(value) -> Decimal:
    return to_decimal(value).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def is_whole(value: Decimal) -> bool:
    return value == value.to_integral_value()


def dec_str(value) -> str | None:
    """JSON form of a stored Decimal."""
    if value is None:
        return None
    return str(value)
