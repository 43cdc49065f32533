"""
Schedule input types -- the read snapshot consumed by the engine.

Responsibility:
    Frozen dataclasses describing what the CRUD layer hands the engine:
    the project scope, tasks, finish-to-start dependency edges, and the
    point-in-time project snapshot that bundles them.

Architecture position:
    Kernel > Domain -- pure data definitions with ZERO I/O.

Invariants enforced:
    - All DTOs are ``frozen=True`` (immutable after construction).
    - All monetary fields use ``Decimal`` -- NEVER ``float``.
    - Field-level validation (date ordering, percent range) is done by the
      graph builder so that violations surface as typed structural errors
      with the offending task id.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ConstraintType(str, Enum):
    """Per-task scheduling constraint."""

    AS_SOON_AS_POSSIBLE = "as_soon_as_possible"
    START_NO_EARLIER_THAN = "start_no_earlier_than"
    START_NO_LATER_THAN = "start_no_later_than"
    FINISH_NO_EARLIER_THAN = "finish_no_earlier_than"
    FINISH_NO_LATER_THAN = "finish_no_later_than"
    MUST_START_ON = "must_start_on"
    MUST_FINISH_ON = "must_finish_on"

    @property
    def requires_date(self) -> bool:
        return self is not ConstraintType.AS_SOON_AS_POSSIBLE


@dataclass(frozen=True, order=True)
class ProjectScope:
    """Organization / workspace / project triple carried by every entity."""

    organization_id: UUID
    workspace_id: UUID
    project_id: UUID

    def __str__(self) -> str:
        return f"{self.organization_id}/{self.workspace_id}/{self.project_id}"

    def log_fields(self) -> dict[str, str]:
        return {
            "organization_id": str(self.organization_id),
            "workspace_id": str(self.workspace_id),
            "project_id": str(self.project_id),
        }


@dataclass(frozen=True)
class TaskSnapshot:
    """A task as read from the CRUD layer."""

    task_id: str
    scope: ProjectScope
    name: str = ""
    planned_start: datetime | None = None
    planned_end: datetime | None = None
    actual_start: datetime | None = None
    actual_end: datetime | None = None
    percent_complete: int = 0
    is_milestone: bool = False
    constraint_type: ConstraintType = ConstraintType.AS_SOON_AS_POSSIBLE
    constraint_date: datetime | None = None
    budgeted_cost: Decimal = Decimal("0")
    actual_cost: Decimal = Decimal("0")
    duration_minutes: int | None = None  # Used only when planned dates are absent
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_scheduled(self) -> bool:
        return self.planned_start is not None and self.planned_end is not None


@dataclass(frozen=True)
class DependencyEdge:
    """Finish-to-start dependency with a signed lag in minutes."""

    predecessor_id: str
    successor_id: str
    lag_minutes: int = 0


@dataclass(frozen=True)
class ProjectSnapshot:
    """
    Consistent point-in-time read of one project.

    ``schedule_from`` anchors the forward pass; when absent the earliest
    planned start among live tasks is used.  ``deadline`` replaces the
    computed finish as the backward-pass anchor when supplied.
    """

    scope: ProjectScope
    tasks: tuple[TaskSnapshot, ...] = ()
    edges: tuple[DependencyEdge, ...] = ()
    schedule_from: datetime | None = None
    deadline: datetime | None = None
    read_at: datetime | None = None

    @property
    def live_tasks(self) -> tuple[TaskSnapshot, ...]:
        return tuple(t for t in self.tasks if not t.is_deleted)
