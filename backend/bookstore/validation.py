"""
Request payload coercion.

Routes hand raw JSON values to these helpers; each returns a clean Python
value or raises InvalidRequestError naming the offending field.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Any

from .errors import InvalidRequestError
from .money import to_decimal
from .time_utils import parse_iso_datetime


def is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def require_fields(payload: dict, *fields: str, message: str | None = None) -> None:
    missing = [f for f in fields if is_missing(payload.get(f))]
    if missing:
        raise InvalidRequestError(
            message or f"{', '.join(missing)} required",
            details={"missing": missing},
        )


def parse_int(value: Any, field: str, *, required: bool = True) -> int | None:
    """
    Strict integer coercion: ints and digit strings only.

    Rejects bools, floats and "12.5" so a quantity or id is never truncated.
    """
    if is_missing(value):
        if required:
            raise InvalidRequestError(f"{field} required", details={"missing": [field]})
        return None
    if isinstance(value, bool):
        raise InvalidRequestError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if re.fullmatch(r"-?\d+", stripped):
            return int(stripped)
    raise InvalidRequestError(f"{field} must be an integer")


def parse_quantity(value: Any, field: str = "quantity", *, allow_zero: bool = False) -> int:
    qty = parse_int(value, field)
    if qty < 0 or (qty == 0 and not allow_zero):
        raise InvalidRequestError(
            f"{field} must be {'zero or ' if allow_zero else ''}positive"
        )
    return qty


def parse_amount(value: Any, field: str = "amount", *, required: bool = True) -> Decimal | None:
    if is_missing(value):
        if required:
            raise InvalidRequestError(f"{field} required", details={"missing": [field]})
        return None
    try:
        return to_decimal(value, exact=True)
    except ValueError:
        raise InvalidRequestError(
            f"{field} must be a number with at most two decimal places",
            details={field: str(value)},
        )


def parse_positive_amount(value: Any, field: str = "amount") -> Decimal:
    amount = parse_amount(value, field)
    if amount <= 0:
        raise InvalidRequestError(f"{field} must be positive")
    return amount


def parse_bool(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def optional_text(value: Any, max_length: int = 255) -> str | None:
    if is_missing(value):
        return None
    text = str(value).strip()
    if len(text) > max_length:
        raise InvalidRequestError(f"text exceeds {max_length} characters")
    return text


def parse_datetime(value: Any, field: str):
    """ISO-8601 query value -> naive UTC datetime, or None when absent."""
    if is_missing(value):
        return None
    try:
        return parse_iso_datetime(str(value))
    except ValueError:
        raise InvalidRequestError(f"{field} must be an ISO-8601 date or datetime")
