from __future__ import annotations

from datetime import date
from typing import Any

from . import money
from .errors import ValidationError
from .time_utils import parse_date


# Maximum amount: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical amounts
MAX_AMOUNT_CENTS = 999_999_999


def strict_int(value: Any, field: str) -> int:
    """
    Integers only: rejects floats, decimals and scientific notation.

    Accepts ints (not bools) and strings of plain digits with an optional
    leading minus.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer", field=field)
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)", field=field)
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", field=field)
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", field=field)
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", field=field)
    raise ValidationError(f"{field} must be an integer", field=field)


def optional_int(data: dict, key: str) -> int | None:
    value = data.get(key)
    if value is None or value == "":
        return None
    return strict_int(value, key)


def require_fields(data: dict, *keys: str) -> None:
    missing = [k for k in keys if data.get(k) in (None, "")]
    if missing:
        raise ValidationError(f"{', '.join(missing)} required", field=missing[0])


def amount_cents(data: dict, key: str = "amount", required: bool = True, default: int = 0) -> int:
    """
    Read a money amount from a request body.

    "<key>_cents" wins and must be an integer; otherwise "<key>" is parsed as
    a major-unit amount ("1,100.50", 20, "KES 20").
    """
    cents_key = f"{key}_cents"
    if data.get(cents_key) not in (None, ""):
        cents = strict_int(data[cents_key], cents_key)
    elif data.get(key) not in (None, ""):
        cents = money.to_cents(data[key], field=key)
    elif required:
        raise ValidationError(f"{key} required", field=key)
    else:
        return default

    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{key} exceeds the maximum allowed amount", field=key)
    return cents


def optional_date(data: dict, key: str) -> date | None:
    value = data.get(key)
    if value in (None, ""):
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError(f"{key} must be a date (YYYY-MM-DD)", field=key)
    return parsed


def as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ("1", "true", "yes", "y", "on")
