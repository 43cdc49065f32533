"""
Schedule output types -- what the CPM core produces.

Responsibility:
    Frozen dataclasses for a computed critical-path schedule: per-task
    early/late dates and float, warnings, and the project-level result.

Architecture position:
    Kernel > Domain -- pure data definitions with ZERO I/O.

Invariants enforced:
    - Schedule arithmetic is integer minutes relative to the anchor; the
      ``*_at`` datetimes are derived from those integers, never the other
      way round.
    - ``ScheduleResult`` equality is structural: recomputing unchanged
      inputs yields an ``==`` result (idempotence).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from schedule_kernel.domain.types import ProjectScope


class WarningKind(str, Enum):
    """Non-fatal findings reported alongside a schedule."""

    CONSTRAINT_VIOLATED = "constraint_violated"
    NEGATIVE_FLOAT = "negative_float"
    MISSING_DURATION = "missing_duration"


@dataclass(frozen=True)
class ScheduleWarning:
    """A feasibility finding for one task."""

    kind: WarningKind
    task_id: str
    message: str
    minutes: int = 0  # Violation depth or float magnitude, when meaningful


@dataclass(frozen=True)
class TaskSchedule:
    """CPM figures for a single task (minutes from the schedule anchor)."""

    task_id: str
    duration_minutes: int
    early_start: int
    early_finish: int
    late_start: int
    late_finish: int
    total_float_minutes: int
    free_float_minutes: int
    is_critical: bool
    is_milestone: bool = False
    constraint_violated: bool = False
    early_start_at: datetime | None = None
    early_finish_at: datetime | None = None
    late_start_at: datetime | None = None
    late_finish_at: datetime | None = None

    @property
    def has_negative_float(self) -> bool:
        return self.total_float_minutes < 0


@dataclass(frozen=True)
class ScheduleResult:
    """
    A complete critical-path schedule for one project.

    ``tasks`` are in the deterministic topological order used by the
    passes; ``critical_path`` keeps that order.

    A violated finish bound shows up twice on the same task: a
    ``CONSTRAINT_VIOLATED`` warning for the overshoot and a
    ``NEGATIVE_FLOAT`` warning because the bound also clamps its late
    finish.  The clamp propagates backwards, so upstream tasks on the
    same chain get ``NEGATIVE_FLOAT`` warnings too.  These are separate
    findings, one per kind per task, not a double count.
    """

    scope: ProjectScope
    anchor: datetime | None
    project_finish_minutes: int
    finish_target_minutes: int
    tasks: tuple[TaskSchedule, ...]
    critical_path: tuple[str, ...]
    warnings: tuple[ScheduleWarning, ...]
    input_fingerprint: str
    project_finish: datetime | None = None

    @property
    def longest_path_minutes(self) -> int:
        """Length of the longest anchor-to-sink chain."""
        return self.project_finish_minutes

    @property
    def is_empty(self) -> bool:
        return not self.tasks

    @property
    def negative_float_task_ids(self) -> tuple[str, ...]:
        return tuple(t.task_id for t in self.tasks if t.has_negative_float)

    @property
    def has_negative_float(self) -> bool:
        return any(t.has_negative_float for t in self.tasks)

    @property
    def constraint_violations(self) -> tuple[ScheduleWarning, ...]:
        return tuple(
            w for w in self.warnings if w.kind == WarningKind.CONSTRAINT_VIOLATED
        )

    def by_task_id(self) -> dict[str, TaskSchedule]:
        return {t.task_id: t for t in self.tasks}

    def task(self, task_id: str) -> TaskSchedule:
        for t in self.tasks:
            if t.task_id == task_id:
                return t
        raise KeyError(task_id)
