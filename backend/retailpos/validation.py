from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

from retailpos.time_utils import parse_iso_datetime


# Largest amount accepted for any money field (avoids overflow in 32-bit columns)
MAX_AMOUNT = 2_000_000_000


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


class NotFoundError(LookupError):
    """404-level missing (or not visible in this store) entity."""


def require_object(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def coerce_int(
    value: Any,
    field: str,
    *,
    minimum: Optional[int] = None,
    maximum: Optional[int] = MAX_AMOUNT,
) -> int:
    """
    Strict integer coercion.

    Accepts ints and plain digit strings. Rejects booleans, floats,
    decimals and scientific notation so that "12.5" or 1e3 never silently
    become money.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if maximum is not None and result > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum}")
    return result


def coerce_bool(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValidationError(f"{field} must be a boolean")


def coerce_str(
    value: Any,
    field: str,
    *,
    max_length: Optional[int] = None,
    allow_blank: bool = False,
) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    result = value.strip()
    if not result and not allow_blank:
        raise ValidationError(f"{field} cannot be blank")
    if max_length is not None and len(result) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return result


def coerce_datetime(value: Any, field: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 datetime")
        if dt is None:
            raise ValidationError(f"{field} must be an ISO-8601 datetime")
        return dt
    raise ValidationError(f"{field} must be a datetime")


def coerce_choice(value: Any, field: str, choices: Iterable[str]) -> str:
    choices = tuple(choices)
    if not isinstance(value, str) or value.strip().lower() not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(choices)}")
    return value.strip().lower()


def query_flag(value: Optional[str]) -> bool:
    """Query-string boolean: true/1/yes are truthy, anything else is false."""
    if value is None:
        return False
    return value.strip().lower() in ("true", "1", "yes")
