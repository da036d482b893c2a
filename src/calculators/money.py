"""Decimal helpers shared by the calculators."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENTS = Decimal("0.01")
ZERO = Decimal("0")


def money(value: Decimal) -> Decimal:
    """Round to cents, half-up."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def or_zero(value: Decimal | None) -> Decimal:
    return ZERO if value is None else value


def parse_decimal(value: Any) -> Decimal | None:
    """Parse a parser-supplied amount into a Decimal.

    None, blank strings and lone dashes mean "no value" and return None.
    Currency symbols and thousands separators are stripped; a value in
    parentheses is negative. Raises ValueError for anything non-numeric.
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    elif isinstance(value, int):
        return Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        text = str(value).strip().replace("$", "").replace(",", "")
        if text in ("", "-"):
            return None
        negative = text.startswith("(") and text.endswith(")")
        if negative:
            text = text[1:-1]
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise ValueError(f"not a number: {value!r}") from None
        if negative:
            result = -result
    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result
