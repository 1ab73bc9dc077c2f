from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import ValidationError, InvalidAmount, InvalidQuantity


# Maximum amount: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical amounts
MAX_AMOUNT_CENTS = 999_999_999


def coerce_int(value: Any, field: str, *, error_cls=ValidationError) -> int:
    """
    Strict integer coercion for API input.

    Rejects bools, floats, decimals and scientific notation so that stock
    quantities are never silently truncated.
    """
    if value is None:
        raise error_cls(f"{field} is required")

    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value

    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise error_cls(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise error_cls(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise error_cls(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise error_cls(f"{field} must be an integer")

    if isinstance(value, float):
        raise error_cls(f"{field} must be an integer, not a decimal")

    raise error_cls(f"{field} must be an integer")


def positive_int(value: Any, field: str, *, error_cls=InvalidQuantity) -> int:
    number = coerce_int(value, field, error_cls=error_cls)
    if number <= 0:
        raise error_cls(f"{field} must be greater than zero")
    return number


def _to_decimal(value: Any, field: str, error_cls) -> Decimal:
    if value is None:
        raise error_cls(f"{field} is required")
    if isinstance(value, bool):
        raise error_cls(f"{field} must be a number")
    try:
        # str() first so floats like 0.1 do not leak binary noise
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise error_cls(f"{field} must be a number")
    if not amount.is_finite():
        raise error_cls(f"{field} must be a finite number")
    return amount


def amount_to_cents(value: Any, field: str, *, error_cls=InvalidAmount) -> int:
    """Convert a decimal currency amount ("100.00", 100, 99.5) to integer cents, half-up."""
    amount = _to_decimal(value, field, error_cls)
    cents = int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if cents < 0:
        raise error_cls(f"{field} must be >= 0")
    if cents > MAX_AMOUNT_CENTS:
        raise error_cls(f"{field} cannot exceed {MAX_AMOUNT_CENTS / 100:,.2f}")
    return cents


def non_negative_cents(value: Any, field: str, *, error_cls=InvalidAmount) -> int:
    cents = coerce_int(value, field, error_cls=error_cls)
    if cents < 0:
        raise error_cls(f"{field} must be >= 0")
    if cents > MAX_AMOUNT_CENTS:
        raise error_cls(f"{field} cannot exceed {MAX_AMOUNT_CENTS}")
    return cents


def cents_from_payload(data: dict, name: str, *, required: bool = True, error_cls=InvalidAmount) -> int | None:
    """
    Read a money field from a JSON body.

    ``<name>_cents`` (integer) wins over ``<name>`` (decimal amount).
    """
    cents_key = f"{name}_cents"
    if data.get(cents_key) is not None:
        return non_negative_cents(data[cents_key], cents_key, error_cls=error_cls)
    if data.get(name) is not None:
        return amount_to_cents(data[name], name, error_cls=error_cls)
    if required:
        raise error_cls(f"{name} or {cents_key} is required")
    return None


def percent(value: Any, field: str) -> Decimal:
    pct = _to_decimal(value, field, ValidationError)
    if pct < 0 or pct > 100:
        raise ValidationError(f"{field} must be between 0 and 100")
    return pct


def clean_text(value: Any, max_length: int | None = None) -> str | None:
    """Trim free text; blank becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if max_length and len(text) > max_length:
        raise ValidationError(f"text exceeds max length {max_length}")
    return text
