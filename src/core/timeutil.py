"""UTC clock and ISO-8601 helpers shared by state serialization."""

from datetime import datetime, timedelta, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def from_iso(value: str | datetime | None) -> datetime | None:
    """Parse an ISO-8601 string; naive values are assumed to be UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def to_seconds(value: timedelta | None) -> float | None:
    return value.total_seconds() if value is not None else None


def from_seconds(value: float | int | None) -> timedelta | None:
    return timedelta(seconds=value) if value is not None else None
