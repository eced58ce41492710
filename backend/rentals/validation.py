from __future__ import annotations
from datetime import date, datetime
from typing import Any, Iterable

from rentals.errors import ValidationError
from rentals.time_utils import parse_iso_datetime, to_utc_naive


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999


def coerce_int(value: Any, field: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    """
    Strict integer coercion for request input.

    Accepts ints and plain digit strings; rejects bools, floats, decimals and
    scientific notation so "12.5" or "1e3" never silently become quantities.
    """
    if value is None:
        raise ValidationError(f"{field} is required")

    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
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


def coerce_cents(value: Any, field: str) -> int:
    return coerce_int(value, field, minimum=0, maximum=MAX_PRICE_CENTS)


def coerce_datetime(value: Any, field: str) -> datetime:
    """Accept ISO-8601 strings, dates or datetimes; return canonical UTC-naive."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is required")
    if isinstance(value, (datetime, date)):
        return to_utc_naive(value)
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 date or datetime")
        if dt is None:
            raise ValidationError(f"{field} must be an ISO-8601 date or datetime")
        return dt
    raise ValidationError(f"{field} must be a datetime")


def coerce_choice(value: Any, field: str, choices: Iterable[str]) -> str:
    allowed = set(choices)
    if value not in allowed:
        raise ValidationError(
            f"Invalid {field} '{value}'. Must be one of: {', '.join(sorted(allowed))}"
        )
    return value


def coerce_id_list(value: Any, field: str) -> list[int]:
    """Ordered list of positive integer ids; repetition is preserved."""
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{field} must be a list of ids")
    return [coerce_int(v, field, minimum=1) for v in value]


def require_text(value: Any, field: str, *, max_length: int = 255) -> str:
    if value is None:
        raise ValidationError(f"{field} is required")
    text = str(value).strip()
    if not text:
        raise ValidationError(f"{field} cannot be blank")
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def optional_text(value: Any, field: str, *, max_length: int = 1000) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def json_object(payload: Any) -> dict:
    """Request body as a dict; an absent body reads as empty."""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload
