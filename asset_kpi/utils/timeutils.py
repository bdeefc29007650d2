"""
Datetime helpers shared by the engine services.
"""

from datetime import datetime, timezone
from typing import Any, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

_DATETIME_ADAPTER = TypeAdapter(datetime)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> Tuple[Optional[datetime], Optional[str]]:
    """
    Parse a stored timestamp.

    Accepts datetime objects, ISO-8601 strings and epoch seconds.

    Returns:
        (parsed UTC datetime or None, raw text of the stored value or None).
        Raw text is only kept for non-datetime inputs.
    """
    if value is None:
        return None, None
    if isinstance(value, datetime):
        return ensure_utc(value), None

    raw = str(value)
    if isinstance(value, str):
        value = value.strip()
        if not value or value.lower() in ("invalid date", "null", "none", "nan"):
            return None, raw
    if isinstance(value, bool):
        return None, raw

    try:
        parsed = _DATETIME_ADAPTER.validate_python(value)
    except ValidationError:
        return None, raw
    return ensure_utc(parsed), raw


def canonical_timestamp(value: datetime) -> str:
    """ISO-8601 UTC text used as the canonical stored form."""
    return ensure_utc(value).isoformat()


def to_hours(seconds: float) -> float:
    return seconds / 3600.0
