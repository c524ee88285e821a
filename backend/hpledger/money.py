# Overview: Exact currency arithmetic on integer minor units (cents).

"""
Money helpers.

All stored amounts are integer cents. Conversions from user input and every
multiplication by a rate go through Decimal with ROUND_HALF_UP so that repeated
sums of payments and refunds never pick up binary floating-point error, and so
receipts and exports show the same figures the ledger holds.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import ValidationError

CENT = Decimal("0.01")
HUNDRED = Decimal(100)
BPS_DIVISOR = Decimal(10_000)
MAX_AMOUNT = Decimal(10) ** 15


def round_currency(value: Any) -> Decimal:
    """Round to 2 decimal places, half up (2.345 -> 2.35, -2.345 -> -2.35)."""
    return _to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Any, field: str = "amount") -> int:
    """
    Parse a currency amount into integer cents.

    Accepts ints, floats, Decimals and strings such as "1,100.50" or "KES 20".
    Floats are routed through str() so 0.1 + 0.2 style artefacts never leak in.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)
    if isinstance(value, int):
        return value * 100
    try:
        amount = _to_decimal(value)
    except ValidationError:
        raise ValidationError(f"{field} must be a number", field=field)
    return int((amount * HUNDRED).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_cents(cents: int | None) -> Decimal:
    if cents is None:
        return Decimal("0.00")
    return (Decimal(int(cents)) / HUNDRED).quantize(CENT)


def add(a: int, b: int) -> int:
    return int(a) + int(b)


def subtract(a: int, b: int) -> int:
    return int(a) - int(b)


def multiply(cents: int, scalar: Any) -> int:
    """Multiply cents by an arbitrary scalar, rounding the result half up."""
    product = Decimal(int(cents)) * _to_decimal(scalar)
    return int(product.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def apply_rate_bps(cents: int, rate_bps: int, periods: Any = 1) -> int:
    """cents x (rate_bps / 10000) x periods, rounded half up to whole cents."""
    rate = Decimal(int(rate_bps)) / BPS_DIVISOR
    return multiply(cents, rate * _to_decimal(periods))


def sum_cents(values) -> int:
    return sum((int(v) for v in values), 0)


def format_amount(cents: int | None) -> str:
    """Render cents as "1,100.00"."""
    return f"{from_cents(cents):,.2f}"


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        result = Decimal(str(value))
    else:
        if value is None:
            raise ValidationError("amount is required")
        text = str(value).strip().replace(",", "")
        # Strip a leading currency code or symbol ("KES 20", "$20")
        while text and not (text[0].isdigit() or text[0] in "-+."):
            text = text[1:]
        text = text.strip()
        if not text:
            raise ValidationError("amount is required")
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise ValidationError(f"Invalid amount: {value}")
    # NaN/Infinity and absurd exponents cannot be quantized to cents
    if not result.is_finite() or result.copy_abs() >= MAX_AMOUNT:
        raise ValidationError(f"Invalid amount: {value}")
    return result
