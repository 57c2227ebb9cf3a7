"""
Time source for booking settlement.

Late days are counted in calendar days of the business timezone, so every
"today" used by the settlement code comes from a Clock instead of calling
date.today() directly.
"""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from rental_backend.app.core.config import settings


class Clock:
    """Interface for the current time."""

    def now(self) -> datetime:
        raise NotImplementedError

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall clock in the configured business timezone."""

    def __init__(self, tz_name: str = None):
        self.tz = ZoneInfo(tz_name or settings.business_timezone)

    def now(self) -> datetime:
        return datetime.now(timezone.utc).astimezone(self.tz)


class FixedClock(Clock):
    """Clock pinned to a given instant (tests, replays)."""

    def __init__(self, current: datetime):
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        self.current = current

    def now(self) -> datetime:
        return self.current

    def today(self) -> date:
        return self.current.date()


_system_clock = SystemClock()


def get_clock() -> Clock:
    """FastAPI dependency returning the process clock."""
    return _system_clock
