"""
Clock -- the only source of "now" for schedule services.

Responsibility:
    Stamps baseline captures, result-store rows and EV snapshots, and
    supplies the default ``as_of_date`` used when a coordinated recompute
    refreshes earned value.  Engines take explicit anchors and dates and
    never read a clock.

Architecture position:
    Kernel > Domain.  ``SystemClock`` is the single place wall-clock time
    enters the system; tests inject ``DeterministicClock``.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """Injected into every service that records or reports time."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        """Calendar date of ``now()``; the default EV as-of date."""
        return self.now().date()


class SystemClock(Clock):
    """Wall-clock time, timezone-aware (UTC unless told otherwise)."""

    def __init__(self, tz: timezone = timezone.utc):
        self._tz = tz

    def now(self) -> datetime:
        return datetime.now(self._tz)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    Returns ``start`` until moved with ``advance``.  A naive ``start`` stays
    naive, which matches what SQLite hands back for stored timestamps.
    """

    def __init__(self, start: datetime | None = None):
        self._current = start or datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: int = 0, *, days: int = 0) -> datetime:
        self._current += timedelta(days=days, seconds=seconds)
        return self._current
