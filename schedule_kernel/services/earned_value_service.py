"""
Earned Value Service - persistence of dated EVM snapshots.

- Accepts a Session from the caller; flushes, never commits
- One row per (project, as_of_date): storing the same date again overwrites
  the figures in place
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from schedule_kernel.domain.clock import Clock, SystemClock
from schedule_kernel.domain.earned_value import EarnedValueMetrics, EarnedValueSnapshot
from schedule_kernel.domain.types import ProjectScope
from schedule_kernel.logging_config import get_logger
from schedule_kernel.models.earned_value import EarnedValueSnapshotModel

logger = get_logger("services.earned_value")

SYSTEM_ACTOR_ID = UUID(int=0)


class EarnedValueService:
    """Upserts and reads ``earned_value_snapshots`` rows."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def store(
        self,
        scope: ProjectScope,
        metrics: EarnedValueMetrics,
        baseline_id: UUID | None = None,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> EarnedValueSnapshot:
        """Insert or overwrite the snapshot for ``metrics.as_of_date``."""
        model = self._get_model(scope.project_id, metrics.as_of_date)
        created = model is None
        if created:
            model = EarnedValueSnapshotModel(
                organization_id=scope.organization_id,
                workspace_id=scope.workspace_id,
                project_id=scope.project_id,
                created_by_id=actor_id,
            )
            self._session.add(model)
        else:
            model.updated_by_id = actor_id

        model.apply_metrics(metrics)
        model.baseline_id = baseline_id
        model.computed_at = self._clock.now()
        self._session.flush()

        logger.info(
            "earned_value_snapshot_stored",
            extra={
                **scope.log_fields(),
                "as_of_date": metrics.as_of_date,
                "baseline_id": str(baseline_id) if baseline_id else None,
                "overwritten": not created,
                "pv": metrics.pv,
                "ev": metrics.ev,
                "ac": metrics.ac,
                "cpi": metrics.cpi,
                "spi": metrics.spi,
            },
        )
        return model.to_dto()

    def get(self, project_id: UUID, as_of_date: date) -> EarnedValueSnapshot | None:
        model = self._get_model(project_id, as_of_date)
        return model.to_dto() if model is not None else None

    def history(self, project_id: UUID) -> Sequence[EarnedValueSnapshot]:
        """All snapshots of a project, oldest date first."""
        models = self._session.execute(
            select(EarnedValueSnapshotModel)
            .where(EarnedValueSnapshotModel.project_id == project_id)
            .order_by(EarnedValueSnapshotModel.as_of_date)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def _get_model(self, project_id: UUID, as_of_date: date) -> EarnedValueSnapshotModel | None:
        return self._session.execute(
            select(EarnedValueSnapshotModel).where(
                EarnedValueSnapshotModel.project_id == project_id,
                EarnedValueSnapshotModel.as_of_date == as_of_date,
            )
        ).scalar_one_or_none()
