"""
Time Sources

DESIGN DECISION: Nothing in the ledger calls datetime.now() directly.
Every time-dependent operation asks an injected Clock, so release
timing can be tested with a simulated clock instead of sleeping.

All timestamps are timezone-aware UTC with whole-second resolution.
That is the resolution of the record files, so a save/load cycle
reproduces every timestamp exactly.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


def utc_now() -> datetime:
    """Current UTC time truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def whole_seconds_up(moment: datetime) -> datetime:
    """Round up to the next whole second; whole-second values pass through."""
    if moment.microsecond:
        return moment.replace(microsecond=0) + timedelta(seconds=1)
    return moment


def is_mature(unlock_at: datetime, now: datetime) -> bool:
    """A lock box matures once `now` reaches or passes its unlock time."""
    return now >= unlock_at


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> datetime:
        return utc_now()


class SimulatedClock:
    """
    Manually driven clock for tests and dry runs.

    Usage:
        clock = SimulatedClock(datetime(2025, 1, 1, tzinfo=timezone.utc))
        clock.advance(seconds=5)
    """

    def __init__(self, start: Optional[datetime] = None):
        start = start or utc_now()
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        self._now = start.replace(microsecond=0)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, **delta) -> datetime:
        """Move time forward by a timedelta built from keyword arguments."""
        step = timedelta(**delta)
        if step < timedelta(0):
            raise ValueError("SimulatedClock cannot move backwards")
        with self._lock:
            self._now = (self._now + step).replace(microsecond=0)
            return self._now

    def set(self, moment: datetime) -> None:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        with self._lock:
            if moment < self._now:
                raise ValueError("SimulatedClock cannot move backwards")
            self._now = moment.replace(microsecond=0)
