# library_attendance/utils/clock.py
"""
Time sources. Services take a clock instead of calling datetime.now() so the
monitor and lifecycle rules can be driven through simulated time in tests.
All times are timezone-aware UTC.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


class SystemClock:
    def now(self) -> datetime:
        return utc_now()


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = as_utc(start) if start else utc_now()

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime):
        self._now = as_utc(value)

    def advance(self, **delta) -> datetime:
        """advance(minutes=5), advance(hours=1), ..."""
        self._now = self._now + timedelta(**delta)
        return self._now
