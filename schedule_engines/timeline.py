"""
schedule_engines.timeline -- datetime <-> integer-minute conversion.

All schedule arithmetic happens on integer minutes relative to the
project anchor so that float comparisons are exact.  These two helpers
are the only place that crosses between the two representations.
"""

from __future__ import annotations

from datetime import datetime, timedelta

_MINUTE = timedelta(minutes=1)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from ``start`` to ``end`` (floor; negative if end < start)."""
    return (end - start) // _MINUTE


def at_minutes(anchor: datetime, minutes: int) -> datetime:
    """The datetime ``minutes`` after ``anchor``."""
    return anchor + timedelta(minutes=minutes)
