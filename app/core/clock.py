"""Time helpers shared by the scheduling services."""

from collections.abc import Callable
from datetime import UTC, datetime

from app.core.exceptions import ValidationException

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_aware(value: datetime, field: str = "datetime") -> datetime:
    """
    Reject naive datetimes and normalize aware ones to UTC.

    Raises:
        ValidationException: If the datetime has no timezone
    """
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValidationException(f"{field} must be timezone-aware")
    return value.astimezone(UTC)
