from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import UnauthenticatedError, ValidationError


# Maximum amount: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT_CENTS = 999_999_999

_CENT = Decimal("0.01")
_MAX_AMOUNT = Decimal(MAX_AMOUNT_CENTS) / 100


def require_operator(operator_id: Any) -> int:
    """Every write is attributed; anonymous callers are rejected up front."""
    if operator_id is None or isinstance(operator_id, bool) or not isinstance(operator_id, int):
        raise UnauthenticatedError("Operator identity required")
    return operator_id


def parse_amount_cents(value: Any, field: str, *, allow_zero: bool = True) -> int:
    """
    Parse a wire amount ("24.20", "24.2", 24.2, 24) into integer cents.

    JSON numbers are read through their shortest repr, so 14.2 is 14.20 and
    not the nearest binary double. More than two decimal places is an error
    rather than a silent rounding.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    if isinstance(value, float):
        amount = Decimal(str(value))
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain decimal amount")
        try:
            amount = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a decimal amount")
    else:
        raise ValidationError(f"{field} must be a decimal amount")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a decimal amount")
    if abs(amount) > _MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds maximum allowed amount")
    if amount != amount.quantize(_CENT):
        raise ValidationError(f"{field} must have at most two decimal places")

    cents = int(amount * 100)
    if cents < 0:
        raise ValidationError(f"{field} must not be negative")
    if cents == 0 and not allow_zero:
        raise ValidationError(f"{field} must be positive")
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} exceeds maximum allowed amount")
    return cents


def parse_positive_int(value: Any, field: str, *, maximum: int | None = None) -> int:
    """Strict integer parsing: no bools, floats, or decimal strings."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped.isascii() or not stripped.lstrip("-").isdigit():
            raise ValidationError(f"{field} must be an integer")
        value = int(stripped)
    if not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    if value < 1:
        raise ValidationError(f"{field} must be at least 1")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{field} must be at most {maximum}")
    return value


def round_half_up(numerator: int, denominator: int) -> int:
    """Integer division rounded half-up (cents never drift through floats)."""
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    return int((Decimal(numerator) / Decimal(denominator)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def percent_of(amount_cents: int, bps: int) -> int:
    """amount * bps / 10000, rounded half-up to the cent."""
    return round_half_up(amount_cents * bps, 10_000)


def format_cents(cents: int | None) -> str | None:
    """Render integer cents as the two-place decimal string used on the wire."""
    if cents is None:
        return None
    return str((Decimal(cents) / 100).quantize(_CENT))
