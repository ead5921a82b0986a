"""Timestamp helpers shared by the scheduling builders."""

from datetime import UTC, date, datetime, time
from typing import Any

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse a stored timestamp leniently.

    Accepts datetimes, dates (midnight UTC), ISO-8601 strings (including a trailing ``Z``) and
    epoch seconds. Anything unparseable becomes the Unix epoch so it sorts
    first instead of raising.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, date):
        return datetime.combine(value, time(), tzinfo=UTC)

    if isinstance(value, bool):
        return EPOCH

    if isinstance(value, int | float):
        try:
            return datetime.fromtimestamp(value, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return EPOCH

    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError:
            return EPOCH

    return EPOCH


def parse_optional_timestamp(value: Any) -> datetime | None:
    """Like parse_timestamp, but keeps missing values as None."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_timestamp(value)
