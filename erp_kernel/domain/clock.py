"""
Injectable time source.

Services never call ``datetime.now()`` or ``date.today()`` themselves.
Receipt and reconciliation numbers, ``paid_at`` / ``finalized_at`` stamps
and the default "as of" date for aging and metrics all come from the
``Clock`` handed to the service, so tests can pin them.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """``now()`` is timezone-aware; ``today()`` is its calendar date."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall-clock UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    Stays on ``start`` (default 2024-01-01 12:00 UTC) until moved with
    ``advance()``.
    """

    DEFAULT_START = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __init__(self, start: datetime | None = None):
        self._current = start or self.DEFAULT_START

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: int = 0, *, days: int = 0) -> datetime:
        """Move forward and return the new time."""
        self._current = self._current + timedelta(days=days, seconds=seconds)
        return self._current
