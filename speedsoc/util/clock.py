"""Time sources for the estimator.

The estimator never reads the wall clock directly so tests and offline replays
can move virtual time forward without sleeping.
"""

from datetime import datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Anything that can tell the current time."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now()


class MockClock:
    """Provides manually advanced virtual time."""

    def __init__(self, start_time: datetime | None = None):
        """Initialize with a virtual start time.

        Args:
            start_time: Virtual start time (default: 2025-01-01 00:00)
        """
        self._now = start_time or datetime(2025, 1, 1)

    def now(self) -> datetime:
        """Get current virtual time."""
        return self._now

    def advance(self, delta: timedelta | float) -> datetime:
        """Move virtual time forward.

        Args:
            delta: Time step as timedelta or seconds

        Returns:
            The new virtual time
        """
        if not isinstance(delta, timedelta):
            delta = timedelta(seconds=delta)
        if delta < timedelta(0):
            raise ValueError(f"Cannot move mock clock backwards by {delta}")
        self._now += delta
        return self._now

    def set(self, when: datetime) -> None:
        """Jump to an absolute virtual time."""
        self._now = when
