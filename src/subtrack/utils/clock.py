"""Time helpers shared by the services."""

from datetime import datetime, UTC
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def is_aware(value: datetime) -> bool:
    """Check whether a datetime carries a usable UTC offset."""
    return value.tzinfo is not None and value.utcoffset() is not None
