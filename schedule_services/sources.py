"""
Collaborator ports of the schedule engine.

The CRUD layer owns tasks and dependencies; the engine only reads them
through ``ScheduleDataSource`` and hands finished schedules to an optional
``ScheduleResultSink``.  Production adapters live with the CRUD layer; an
in-memory implementation exists only under ``tests/``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from schedule_kernel.domain.schedule import ScheduleResult
from schedule_kernel.domain.types import ProjectScope, ProjectSnapshot


@runtime_checkable
class ScheduleDataSource(Protocol):
    """
    Point-in-time reader of one project's tasks and edges.

    ``load_snapshot`` must return a consistent snapshot (one read
    transaction or equivalent isolation) and may raise
    ``TransientStorageError`` for retryable read failures.
    """

    def load_snapshot(self, scope: ProjectScope) -> ProjectSnapshot: ...


@runtime_checkable
class ScheduleResultSink(Protocol):
    """Receives every published (non-stale) schedule after it is stored."""

    def publish(self, result: ScheduleResult) -> None: ...
