"""
Canonical Clock

All wall-clock decisions (session windows, sweep cut-offs, "today") are made
in one fixed timezone rather than the server's local time.
"""
from datetime import date, datetime, time, timedelta
from typing import Optional

import pytz


class Clock:
    """Current time in the canonical timezone"""

    def __init__(self, timezone_name: str):
        self.tz = pytz.timezone(timezone_name)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()

    def localize(self, day: date, at: time) -> datetime:
        """Attach the canonical timezone to a calendar date and wall-clock time"""
        return self.tz.localize(datetime.combine(day, at))


class ManualClock(Clock):
    """
    Clock that only moves when told to.

    Used by tests and simulations to cross session boundaries without
    real delays.
    """

    def __init__(self, timezone_name: str, start: Optional[datetime] = None):
        super().__init__(timezone_name)
        self._now = self._coerce(start) if start else datetime.now(self.tz)

    def _coerce(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return self.tz.localize(value)
        return value.astimezone(self.tz)

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime):
        self._now = self._coerce(value)

    def advance(self, **kwargs):
        """Move forward by a timedelta given as keyword arguments (minutes=31)"""
        self._now = self.tz.normalize(self._now + timedelta(**kwargs))
