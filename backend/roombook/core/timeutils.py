"""UTC helpers.

Every timestamp is stored and compared as a naive UTC datetime. Aware values
coming from the API are converted to UTC first; naive values are taken to be
UTC already. Operating hours and weekdays are evaluated on the same UTC wall
clock.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def sunday_based_weekday(value: datetime) -> int:
    """Weekday with 0 = Sunday ... 6 = Saturday, as stored on rooms."""
    return (value.weekday() + 1) % 7
