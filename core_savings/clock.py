"""
Clock Module

Time sources for lock arithmetic. Production code reads the system clock;
tests and simulations drive a manual clock that only moves forward.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional
import threading


class Clock(ABC):
    """Source of the current time"""

    @abstractmethod
    def now(self) -> datetime:
        """Current timezone-aware UTC time"""
        pass


class SystemClock(Clock):
    """Wall clock"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock(Clock):
    """
    Logical clock that advances only when told to.

    Time can only move forward, never backward.
    """

    def __init__(self, start: Optional[datetime] = None):
        start = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        self._current_time = start
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._current_time

    def advance(self, seconds: float) -> datetime:
        """Move the clock forward by a number of seconds"""
        if seconds < 0:
            raise ValueError(f"Cannot move time backwards by {seconds}s")
        with self._lock:
            self._current_time = self._current_time + timedelta(seconds=seconds)
            return self._current_time

    def set(self, new_time: datetime) -> None:
        """
        Jump the clock to a new time.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time.tzinfo is None:
            new_time = new_time.replace(tzinfo=timezone.utc)
        with self._lock:
            if new_time < self._current_time:
                raise ValueError(
                    f"Cannot move time backwards: {new_time} < {self._current_time}"
                )
            self._current_time = new_time
