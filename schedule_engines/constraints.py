"""
schedule_engines.constraints -- per-task scheduling constraint resolution.

Responsibility:
    Convert a task's ``constraint_type`` / ``constraint_date`` into an
    earliest-allowed start and a latest-allowed finish, both expressed in
    integer minutes from the schedule anchor, and report how far a
    predecessor-driven schedule overshoots the constraint.

Architecture position:
    Engines -- pure functions, zero I/O.  Consumed by the CPM forward and
    backward passes.

Constraint semantics (d = constraint date, dur = duration):

    ==========================  ===================  ======================
    constraint                  earliest start       latest finish
    ==========================  ===================  ======================
    as_soon_as_possible         --                   --
    start_no_earlier_than       d                    --
    start_no_later_than         --                   d + dur
    finish_no_earlier_than      d - dur              --
    finish_no_later_than        --                   d
    must_start_on               d                    d + dur
    must_finish_on              d - dur              d
    ==========================  ===================  ======================

    A constraint is violated when the early finish exceeds the latest
    finish.  Violations never move dates; the pass keeps the
    predecessor-driven date and the caller records a warning.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from schedule_engines.timeline import minutes_between
from schedule_kernel.domain.types import ConstraintType, TaskSnapshot

_EARLIEST_START_FROM_DATE = frozenset({
    ConstraintType.START_NO_EARLIER_THAN,
    ConstraintType.MUST_START_ON,
})
_EARLIEST_FINISH_FROM_DATE = frozenset({
    ConstraintType.FINISH_NO_EARLIER_THAN,
    ConstraintType.MUST_FINISH_ON,
})
_LATEST_START_FROM_DATE = frozenset({
    ConstraintType.START_NO_LATER_THAN,
    ConstraintType.MUST_START_ON,
})
_LATEST_FINISH_FROM_DATE = frozenset({
    ConstraintType.FINISH_NO_LATER_THAN,
    ConstraintType.MUST_FINISH_ON,
})


@dataclass(frozen=True)
class ConstraintBounds:
    """Resolved bounds for one task, in minutes from the anchor."""

    constraint_type: ConstraintType = ConstraintType.AS_SOON_AS_POSSIBLE
    earliest_start: int | None = None
    latest_finish: int | None = None

    def clamp_start(self, driven_start: int) -> int:
        """Early start after applying the earliest-allowed start."""
        if self.earliest_start is None:
            return driven_start
        return max(driven_start, self.earliest_start)

    def clamp_finish(self, driven_finish: int) -> int:
        """Late finish after applying the latest-allowed finish."""
        if self.latest_finish is None:
            return driven_finish
        return min(driven_finish, self.latest_finish)

    def violation_minutes(self, early_finish: int) -> int:
        """Minutes by which ``early_finish`` overshoots the bound (0 if none)."""
        if self.latest_finish is None:
            return 0
        return max(0, early_finish - self.latest_finish)


UNCONSTRAINED = ConstraintBounds()


def resolve_constraint(
    task: TaskSnapshot,
    duration_minutes: int,
    anchor: datetime,
) -> ConstraintBounds:
    """Resolve ``task``'s constraint against ``anchor``."""
    ctype = task.constraint_type
    if ctype is ConstraintType.AS_SOON_AS_POSSIBLE or task.constraint_date is None:
        return UNCONSTRAINED

    date_minutes = minutes_between(anchor, task.constraint_date)

    earliest_start = None
    if ctype in _EARLIEST_START_FROM_DATE:
        earliest_start = date_minutes
    elif ctype in _EARLIEST_FINISH_FROM_DATE:
        earliest_start = date_minutes - duration_minutes

    latest_finish = None
    if ctype in _LATEST_START_FROM_DATE:
        latest_finish = date_minutes + duration_minutes
    elif ctype in _LATEST_FINISH_FROM_DATE:
        latest_finish = date_minutes

    return ConstraintBounds(ctype, earliest_start, latest_finish)
