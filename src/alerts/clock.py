"""Injectable wall clock and quiet-hours checks.

Hour-of-day rules (zero-sales gate, hours remaining, proportional
targets, quiet hours) read time only through a ``Clock`` so tests and
diagnostics can pin the current time.
"""

from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    """Source of the current local time."""

    def now(self) -> datetime:
        """Current timezone-aware local datetime."""
        ...


class SystemClock:
    """Clock reading the system time in a fixed timezone."""

    def __init__(self, tz: str | tzinfo = "UTC") -> None:
        self._tz = ZoneInfo(tz) if isinstance(tz, str) else tz

    def now(self) -> datetime:
        return datetime.now(self._tz)


class FixedClock:
    """Clock frozen at a given instant. ``advance`` moves it forward."""

    def __init__(self, at: datetime) -> None:
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        self._at = at

    def now(self) -> datetime:
        return self._at

    def advance(self, **kwargs: float) -> None:
        self._at = self._at + timedelta(**kwargs)

    @classmethod
    def at_hour(
        cls,
        day: date,
        hour: int,
        minute: int = 0,
        tz: str | tzinfo = "UTC",
    ) -> "FixedClock":
        zone = ZoneInfo(tz) if isinstance(tz, str) else tz
        return cls(datetime(day.year, day.month, day.day, hour, minute, tzinfo=zone))


def hhmm(moment: datetime) -> str:
    """Format a datetime as zero-padded ``HH:MM``."""
    return f"{moment.hour:02d}:{moment.minute:02d}"


def in_quiet_hours(current: str, start: str | None, end: str | None) -> bool:
    """Check whether ``current`` (``HH:MM``) lies in the quiet window.

    Both bounds are inclusive. A window whose start is later than its end
    (``22:00``-``07:00``) wraps around midnight. Missing bounds mean no
    quiet window.
    """
    if not start or not end:
        return False
    if start <= end:
        return start <= current <= end
    return current >= start or current <= end


def hours_remaining_in_day(now: datetime) -> int:
    """Whole hours until 23:59:59.999 local, rounded up, never negative."""
    end_of_day = now.replace(hour=23, minute=59, second=59, microsecond=999000)
    if now.tzinfo is not None:
        # aware datetimes sharing a tzinfo subtract as wall clock time
        end_of_day = end_of_day.astimezone(timezone.utc)
        now = now.astimezone(timezone.utc)
    seconds = (end_of_day - now).total_seconds()
    # ceil without float drift for exact hour boundaries
    hours = -(-int(seconds * 1000) // 3_600_000)
    return max(0, hours)
