"""Clock sources for the marketplace.

Anything that compares against "now" (job creation, the expiry sweeper)
takes a Clock so tests can pin time.
"""

import threading
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime:
        """Current aware datetime."""
        ...

    def today(self) -> date:
        """Current calendar date in the marketplace's timezone."""
        ...


class SystemClock:
    """Wall clock in a fixed timezone (UTC unless told otherwise)."""

    def __init__(self, tz: Optional[tzinfo] = None):
        self.tz = tz or timezone.utc

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """Manually driven clock for tests and replays."""

    def __init__(self, current: datetime):
        if current.tzinfo is None:
            raise ValueError("FixedClock requires an aware datetime")
        self._current = current
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._current

    def today(self) -> date:
        return self.now().date()

    def set(self, current: datetime) -> None:
        if current.tzinfo is None:
            raise ValueError("FixedClock requires an aware datetime")
        with self._lock:
            self._current = current

    def advance(self, **kwargs) -> datetime:
        """Move the clock forward by timedelta(**kwargs) and return the new time."""
        with self._lock:
            self._current = self._current + timedelta(**kwargs)
            return self._current
