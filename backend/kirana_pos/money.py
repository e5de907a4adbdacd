# Overview: Decimal helpers for money and quantity values.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

ZERO = Decimal("0")
HUNDRED = Decimal("100")
MONEY_PLACES = Decimal("0.01")
QUANTITY_PLACES = Decimal("0.001")


def to_decimal(value: Any) -> Decimal:
    """
    Convert a number-like value to Decimal without binary float noise.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not 0.1000000000000000055...
    Raises ValueError for booleans, blanks, NaN and infinities.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError("boolean is not a number")
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValueError("blank is not a number")
        try:
            result = Decimal(stripped)
        except InvalidOperation:
            raise ValueError(f"{value!r} is not a number")
    elif value is None:
        raise ValueError("None is not a number")
    else:
        raise ValueError(f"{value!r} is not a number")

    if not result.is_finite():
        raise ValueError("number must be finite")
    return result


def round_money(value: Any) -> Decimal:
    """Half-up rounding to 2 places; only for presentation and persistence."""
    return to_decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def round_quantity(value: Any) -> Decimal:
    return to_decimal(value).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def decimal_str(value: Optional[Decimal]) -> Optional[str]:
    if value is None:
        return None
    return str(to_decimal(value))


def money_str(value: Optional[Decimal]) -> Optional[str]:
    if value is None:
        return None
    return str(round_money(value))


def quantity_str(value: Optional[Decimal]) -> Optional[str]:
    """Quantities print without trailing zeros: 2.500 -> "2.5", 3.000 -> "3"."""
    if value is None:
        return None
    normalized = to_decimal(value).normalize()
    if normalized == normalized.to_integral():
        return str(normalized.quantize(Decimal("1")))
    return format(normalized, "f")
