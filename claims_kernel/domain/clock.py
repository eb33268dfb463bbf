"""
Clock -- injectable source of the current time.

Responsibility:
    Domain and service code never call ``datetime.now()`` or
    ``date.today()`` directly.  Submission dates, review dates, the
    future-month and stale-period checks and invoice dates all read time
    through a Clock.

Architecture position:
    Kernel > Domain.  ``SystemClock`` is the one sanctioned time boundary.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone

# Mid-month, so one-month shifts in either direction stay inside the month.
DEFAULT_TEST_TIME = datetime(2025, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """
    Abstract clock.

    Guarantees:
        - ``now()`` returns a timezone-aware UTC ``datetime``.
        - ``today()`` is the calendar date of ``now()``.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    ``now()`` keeps returning the same instant until ``advance()`` moves it.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or DEFAULT_TEST_TIME

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: int = 1) -> None:
        """Move the clock forward by ``seconds``."""
        self._current += timedelta(seconds=seconds)
