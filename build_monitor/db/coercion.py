"""Loose type coercion applied to record fields before they are persisted."""

from datetime import datetime, timezone
from typing import Any


def require_identifier(value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError("identifier is required and must be a non-empty string")
    return value


def optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def strict_bool(value: Any) -> bool:
    # Integers come back from sqlite boolean columns as 0/1
    if isinstance(value, bool):
        return value
    return type(value) is int and value == 1


def timestamp_or_none(value: Any) -> datetime | None:
    """Parse ``value`` into an aware UTC datetime, or None when it is not a timestamp."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def serialize_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")
