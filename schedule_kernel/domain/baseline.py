"""
Baseline domain models.

Frozen value objects for locked schedule baselines, their per-task items,
and the comparison of a live schedule against a baseline.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from schedule_kernel.domain.types import ProjectScope


@dataclass(frozen=True)
class BaselineItem:
    """Captured CPM figures for one task inside a baseline."""

    task_id: str
    planned_start: datetime
    planned_end: datetime
    duration_minutes: int
    critical_path: bool
    total_float_minutes: int
    captured_at: datetime | None = None


@dataclass(frozen=True)
class Baseline:
    """A locked, immutable schedule snapshot."""

    baseline_id: UUID
    scope: ProjectScope
    name: str
    created_by: UUID
    captured_at: datetime
    locked: bool
    is_active: bool
    item_count: int
    project_finish: datetime | None = None
    items: tuple[BaselineItem, ...] = ()


@dataclass(frozen=True)
class BaselineTaskVariance:
    """Current schedule vs. baseline for one task (positive = later)."""

    task_id: str
    baseline_start: datetime
    baseline_end: datetime
    current_start: datetime | None
    current_end: datetime | None
    start_variance_minutes: int
    end_variance_minutes: int
    was_critical: bool
    is_critical: bool

    @property
    def is_late(self) -> bool:
        return self.end_variance_minutes > 0


@dataclass(frozen=True)
class BaselineSummary:
    """Project-level roll-up of a baseline comparison."""

    count_late: int
    count_early: int
    max_slip_minutes: int
    critical_path_slip_minutes: int


@dataclass(frozen=True)
class BaselineComparison:
    """Full comparison result."""

    baseline_id: UUID
    baseline_name: str
    items: tuple[BaselineTaskVariance, ...]
    summary: BaselineSummary
    added_task_ids: tuple[str, ...] = ()
    removed_task_ids: tuple[str, ...] = ()
