"""
Clock -- injectable source of "now" and "today".

Responsibility:
    Services and selectors receive a Clock instead of calling
    ``datetime.now()`` or ``date.today()``.  Decision, report and payment
    timestamps, completion dates and the "today" that decides whether a
    milestone is overdue all come from it.

Architecture position:
    Kernel > Domain.  SystemClock is the only place wall-clock time is read.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta, timezone

_NOON = time(12, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """``now()`` is timezone-aware; ``today()`` is its UTC calendar date."""

    @abstractmethod
    def now(self) -> datetime: ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)

    def today(self) -> date:
        return self.now_utc().date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Starts at 2024-01-01 12:00 UTC unless given another instant.  Tests move
    it across milestone dates with ``set_date`` and ``advance_days``.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or datetime.combine(date(2024, 1, 1), _NOON)

    def now(self) -> datetime:
        return self._current

    def set_time(self, instant: datetime) -> None:
        self._current = instant

    def set_date(self, day: date) -> None:
        """Jump to noon UTC on ``day``."""
        self._current = datetime.combine(day, _NOON)

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def advance_days(self, days: int = 1) -> None:
        self._current += timedelta(days=days)
