"""
Time sources.

All time-dependent logic (rate windows, budget days, cache expiry, batch
window) reads the current time from an injected clock.
"""

from datetime import datetime, timedelta
from typing import Optional, Protocol


class Clock(Protocol):
    """Anything that can tell the current time."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall-clock time in the host's local timezone."""

    def now(self) -> datetime:
        return datetime.now()


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 1, 1, 12, 0, 0)

    def now(self) -> datetime:
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = moment

    def advance(self, **kwargs: float) -> datetime:
        """Move forward by a timedelta built from kwargs (seconds=, minutes=, ...)."""
        self._now = self._now + timedelta(**kwargs)
        return self._now


def day_key(clock: Clock) -> str:
    """Calendar-date key (YYYY-MM-DD) used to partition daily budgets."""
    return clock.now().date().isoformat()
