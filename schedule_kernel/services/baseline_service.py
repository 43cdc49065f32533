"""
Baseline Service - persistence of locked schedule baselines.

This service is responsible for:
- Capturing a computed ``ScheduleResult`` as a baseline plus one item per task
- Enforcing at most one active baseline per project (atomic activation)
- Reading baselines back as frozen DTOs
- Administrative purge of superseded baselines

The service follows the kernel service pattern:
- Accepts a Session from the caller
- Uses session.flush() within the transaction
- Does NOT call session.commit() - caller controls boundaries, so a failure
  half-way through ``create`` rolls back the header and every item together

Lifecycle of a baseline row inside ``create``:
    inserted unlocked -> items attached -> locked (one transaction)
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID, uuid4

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from schedule_kernel.domain.baseline import Baseline, BaselineItem
from schedule_kernel.domain.clock import Clock, SystemClock
from schedule_kernel.domain.schedule import ScheduleResult
from schedule_kernel.domain.types import ProjectScope
from schedule_kernel.exceptions import (
    ActiveBaselinePurgeError,
    BaselineEmptyError,
    BaselineNotFoundError,
    NoFeasibleScheduleError,
)
from schedule_kernel.logging_config import get_logger
from schedule_kernel.models.baseline import BaselineItemModel, ScheduleBaselineModel
from schedule_kernel.models.earned_value import EarnedValueSnapshotModel

logger = get_logger("services.baseline")

NEGATIVE_FLOAT_REJECT = "reject"
NEGATIVE_FLOAT_WARN = "warn"


class BaselineService:
    """
    Creates, activates, reads and purges schedule baselines.

    Guarantees
    ----------
    * ``create`` never leaves an unlocked or partially populated baseline
      visible after commit; any exception propagates and the caller's
      transaction rolls everything back.
    * ``activate`` deactivates and flushes the previous active baseline
      before activating the target, so the partial unique index never sees
      two active rows.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        negative_float_policy: str = NEGATIVE_FLOAT_REJECT,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._negative_float_policy = negative_float_policy

    # =========================================================================
    # Create
    # =========================================================================

    def create(
        self,
        schedule: ScheduleResult,
        name: str,
        actor_id: UUID,
    ) -> Baseline:
        """
        Capture ``schedule`` as a new locked, inactive baseline.

        Raises:
            BaselineEmptyError: The schedule has no tasks.
            NoFeasibleScheduleError: Some task has negative float and the
                policy is ``reject``.
        """
        scope = schedule.scope
        if schedule.is_empty:
            raise BaselineEmptyError(str(scope.project_id))

        negative = schedule.negative_float_task_ids
        if negative:
            if self._negative_float_policy == NEGATIVE_FLOAT_REJECT:
                logger.warning(
                    "baseline_rejected_negative_float",
                    extra={**scope.log_fields(), "task_ids": list(negative)},
                )
                raise NoFeasibleScheduleError(str(scope.project_id), list(negative))
            logger.warning(
                "baseline_captured_with_negative_float",
                extra={**scope.log_fields(), "task_ids": list(negative)},
            )

        captured_at = self._clock.now()
        model = ScheduleBaselineModel(
            id=uuid4(),
            organization_id=scope.organization_id,
            workspace_id=scope.workspace_id,
            project_id=scope.project_id,
            name=name,
            locked=False,
            is_active=False,
            captured_at=captured_at,
            item_count=0,
            project_finish_at=schedule.project_finish,
            created_by_id=actor_id,
        )
        self._session.add(model)
        self._session.flush()

        for task in schedule.tasks:
            item = BaselineItem(
                task_id=task.task_id,
                planned_start=task.early_start_at,
                planned_end=task.early_finish_at,
                duration_minutes=task.duration_minutes,
                critical_path=task.is_critical,
                total_float_minutes=task.total_float_minutes,
                captured_at=captured_at,
            )
            self._add_item(model, item, actor_id)
        self._session.flush()

        model.item_count = len(schedule.tasks)
        model.locked = True
        self._session.flush()

        logger.info(
            "baseline_created",
            extra={
                **scope.log_fields(),
                "baseline_id": str(model.id),
                "baseline_name": name,
                "item_count": model.item_count,
            },
        )
        return model.to_dto()

    def _add_item(
        self,
        model: ScheduleBaselineModel,
        item: BaselineItem,
        actor_id: UUID,
    ) -> None:
        model.items.append(
            BaselineItemModel.from_dto(item, baseline_id=model.id, created_by_id=actor_id)
        )

    # =========================================================================
    # Activate
    # =========================================================================

    def activate(self, baseline_id: UUID, actor_id: UUID) -> Baseline:
        """
        Make ``baseline_id`` the project's only active baseline.

        Re-activating the already active baseline is a no-op.
        """
        target = self._get_model(baseline_id)
        if target.is_active:
            return target.to_dto()

        current = self._session.execute(
            select(ScheduleBaselineModel)
            .where(
                ScheduleBaselineModel.project_id == target.project_id,
                ScheduleBaselineModel.is_active.is_(True),
            )
            .with_for_update()
        ).scalars().all()

        for model in current:
            model.is_active = False
            model.updated_by_id = actor_id
        self._session.flush()

        target.is_active = True
        target.updated_by_id = actor_id
        self._session.flush()

        logger.info(
            "baseline_activated",
            extra={
                "project_id": str(target.project_id),
                "baseline_id": str(baseline_id),
                "deactivated": [str(m.id) for m in current],
            },
        )
        return target.to_dto()

    # =========================================================================
    # Read
    # =========================================================================

    def get(self, baseline_id: UUID) -> Baseline:
        return self._get_model(baseline_id).to_dto()

    def get_active(self, project_id: UUID) -> Baseline | None:
        model = self._session.execute(
            select(ScheduleBaselineModel).where(
                ScheduleBaselineModel.project_id == project_id,
                ScheduleBaselineModel.is_active.is_(True),
            )
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def list_for_project(self, scope: ProjectScope) -> Sequence[Baseline]:
        """Baseline headers (no items), oldest first."""
        models = self._session.execute(
            select(ScheduleBaselineModel)
            .where(
                ScheduleBaselineModel.organization_id == scope.organization_id,
                ScheduleBaselineModel.workspace_id == scope.workspace_id,
                ScheduleBaselineModel.project_id == scope.project_id,
            )
            .order_by(ScheduleBaselineModel.captured_at, ScheduleBaselineModel.name)
        ).scalars().all()
        return [m.to_dto(include_items=False) for m in models]

    def _get_model(self, baseline_id: UUID) -> ScheduleBaselineModel:
        model = self._session.get(ScheduleBaselineModel, baseline_id)
        if model is None:
            raise BaselineNotFoundError(str(baseline_id))
        return model

    # =========================================================================
    # Purge
    # =========================================================================

    def purge(self, baseline_id: UUID, actor_id: UUID) -> int:
        """
        Administratively delete a non-active baseline and its items.

        Earned-value snapshots that referenced the baseline keep their
        figures and lose the reference.

        Returns:
            Number of items removed.

        Raises:
            BaselineNotFoundError: Unknown id.
            ActiveBaselinePurgeError: The baseline is active.
        """
        model = self._get_model(baseline_id)
        if model.is_active:
            raise ActiveBaselinePurgeError(str(baseline_id))
        project_id = model.project_id

        self._session.execute(
            update(EarnedValueSnapshotModel)
            .where(EarnedValueSnapshotModel.baseline_id == baseline_id)
            .values(baseline_id=None)
            .execution_options(synchronize_session=False)
        )
        removed = self._session.execute(
            delete(BaselineItemModel).where(BaselineItemModel.baseline_id == baseline_id)
        ).rowcount
        self._session.execute(
            delete(ScheduleBaselineModel).where(ScheduleBaselineModel.id == baseline_id)
        )
        self._session.expunge_all()

        logger.warning(
            "baseline_purged",
            extra={
                "project_id": str(project_id),
                "baseline_id": str(baseline_id),
                "actor_id": str(actor_id),
                "item_count": removed,
            },
        )
        return removed
