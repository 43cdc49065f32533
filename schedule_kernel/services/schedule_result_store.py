"""
Schedule Result Store - the latest published schedule per project.

Each ``save`` replaces the project's previous run (header and task rows)
inside the caller's transaction, so a reader sees either the old run or
the new one, never a mix.  Caller controls commit.
"""

from __future__ import annotations

from dataclasses import asdict
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from schedule_kernel.domain.clock import Clock, SystemClock
from schedule_kernel.domain.schedule import ScheduleResult
from schedule_kernel.logging_config import get_logger
from schedule_kernel.models.schedule_result import ScheduleRunModel, TaskScheduleRecordModel

logger = get_logger("services.schedule_result_store")


class ScheduleResultStore:

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def save(self, result: ScheduleResult) -> UUID:
        """Replace the project's stored schedule with ``result``; returns the run id."""
        scope = result.scope
        previous = self._session.execute(
            select(ScheduleRunModel.id).where(ScheduleRunModel.project_id == scope.project_id)
        ).scalars().all()
        if previous:
            self._session.execute(
                delete(TaskScheduleRecordModel).where(TaskScheduleRecordModel.run_id.in_(previous))
            )
            self._session.execute(
                delete(ScheduleRunModel).where(ScheduleRunModel.id.in_(previous))
            )

        run = ScheduleRunModel(
            organization_id=scope.organization_id,
            workspace_id=scope.workspace_id,
            project_id=scope.project_id,
            input_fingerprint=result.input_fingerprint,
            computed_at=self._clock.now(),
            anchor_at=result.anchor,
            project_finish_at=result.project_finish,
            project_finish_minutes=result.project_finish_minutes,
            finish_target_minutes=result.finish_target_minutes,
            critical_path=list(result.critical_path),
            warnings=[
                {**asdict(w), "kind": w.kind.value} for w in result.warnings
            ],
            tasks=[
                TaskScheduleRecordModel.from_dto(task, position)
                for position, task in enumerate(result.tasks)
            ],
        )
        self._session.add(run)
        self._session.flush()

        logger.info(
            "schedule_result_stored",
            extra={
                **scope.log_fields(),
                "run_id": str(run.id),
                "input_fingerprint": result.input_fingerprint,
                "task_count": len(result.tasks),
                "replaced": len(previous),
            },
        )
        return run.id

    def latest(self, project_id: UUID) -> ScheduleResult | None:
        run = self._session.execute(
            select(ScheduleRunModel).where(ScheduleRunModel.project_id == project_id)
        ).scalar_one_or_none()
        return run.to_dto() if run is not None else None
