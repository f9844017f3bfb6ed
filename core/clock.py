"""
Core Module - Operation Clock.

============================================================
RESPONSIBILITY
============================================================
Provides the wall-clock abstraction every component samples
exactly once per operation.

- All timestamps on records come from a clock instance
- Enables deterministic testing of timing rules
- UTC only - no timezone conversions in business logic

============================================================
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional
import threading


# ============================================================
# CLOCK PROTOCOL
# ============================================================

class ClockProtocol(ABC):
    """Abstract interface for the operation clock."""

    @abstractmethod
    def now(self) -> datetime:
        """Get current UTC datetime."""
        pass

    def timestamp(self) -> int:
        """Get current Unix timestamp in whole seconds."""
        return int(self.now().timestamp())


# ============================================================
# SYSTEM CLOCK (PRODUCTION)
# ============================================================

class SystemClock(ClockProtocol):
    """Production clock using actual system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


# ============================================================
# MOCK CLOCK (TESTING)
# ============================================================

class MockClock(ClockProtocol):
    """
    Mock clock for testing.

    Allows time manipulation so stage-timing and
    history windows can be exercised deterministically.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        """
        Initialize mock clock.

        Args:
            initial_time: Starting time (defaults to current UTC)
        """
        self._time = ensure_utc(initial_time or datetime.now(timezone.utc))
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._time

    def set_time(self, new_time: datetime) -> None:
        """Set the current time."""
        with self._lock:
            self._time = ensure_utc(new_time)

    def advance(self, seconds: float = 0, **kwargs) -> None:
        """
        Advance time by the specified amount.

        Args:
            seconds: Number of seconds to advance
            **kwargs: Passed to timedelta (minutes, hours, days, ...)
        """
        with self._lock:
            self._time = self._time + timedelta(seconds=seconds, **kwargs)


# ============================================================
# TIMESTAMP UTILITIES
# ============================================================

def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (e.g. read back from SQLite)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def elapsed_minutes(since: datetime, now: datetime) -> int:
    """Whole minutes elapsed between two instants (never negative)."""
    delta = ensure_utc(now) - ensure_utc(since)
    return max(0, int(delta.total_seconds()) // 60)


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "ensure_utc",
    "elapsed_minutes",
]
