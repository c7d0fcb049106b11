# apps/core/adapters/clocks.py
from datetime import datetime, timedelta

import pytz

from apps.core.ports.clock import IClock


class SystemClock(IClock):
    def __init__(self, tz_name: str = 'UTC'):
        # Strefa gracza - granice dnia i tygodnia liczymy lokalnie
        self.tz = pytz.timezone(tz_name)

    def now(self) -> datetime:
        return datetime.now(pytz.UTC).astimezone(self.tz)


class FixedClock(IClock):
    """Zegar sterowany ręcznie (testy, symulacje)."""

    def __init__(self, now: datetime):
        if now.tzinfo is None:
            now = pytz.UTC.localize(now)
        self._now = now

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        if now.tzinfo is None:
            now = pytz.UTC.localize(now)
        self._now = now

    def advance(self, **kwargs) -> datetime:
        self._now = self._now + timedelta(**kwargs)
        return self._now
