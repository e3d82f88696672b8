"""
Money helpers.

Amounts are stored as Numeric(18, 2) and handled as Decimal. Every amount
is in the currency of the register or document it belongs to; nothing here
converts between currencies.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_decimal(value, *, exact: bool = False) -> Decimal:
    """
    Coerce an int, str or Decimal to a two-place Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.10"), not its binary
    expansion. Raises ValueError on anything unparseable. With exact=True a
    value with non-zero digits past the cent also raises instead of being
    rounded.
    """
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, (int, str)):
        try:
            d = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"invalid amount: {value!r}")
    elif isinstance(value, float):
        d = Decimal(str(value))
    else:
        raise ValueError(f"invalid amount: {value!r}")

    if not d.is_finite():
        raise ValueError(f"invalid amount: {value!r}")
    try:
        rounded = d.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"amount out of range: {value!r}")
    if exact and d != rounded:
        raise ValueError(f"more than two decimal places: {value!r}")
    return rounded


def format_money(value) -> str | None:
    """Serialize a Numeric column value as a fixed two-place string."""
    if value is None:
        return None
    return f"{to_decimal(value):.2f}"
