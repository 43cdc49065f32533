"""
SQLAlchemy ORM persistence models for the latest computed schedule.

``schedule_runs`` holds one row per project (the most recently published
result); ``schedule_task_results`` holds that run's per-task figures.
Both are replaced wholesale on every published recompute, so readers
never see a mix of two runs.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from schedule_kernel.db.base import Base


class ScheduleRunModel(Base):
    """Header of the latest published schedule for a project."""

    __tablename__ = "schedule_runs"

    __table_args__ = (
        UniqueConstraint("project_id", name="uq_schedule_run_project"),
    )

    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    workspace_id: Mapped[UUID] = mapped_column(nullable=False)
    project_id: Mapped[UUID] = mapped_column(nullable=False)
    input_fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    computed_at: Mapped[datetime] = mapped_column(nullable=False)
    anchor_at: Mapped[datetime | None] = mapped_column(nullable=True)
    project_finish_at: Mapped[datetime | None] = mapped_column(nullable=True)
    project_finish_minutes: Mapped[int] = mapped_column(nullable=False, default=0)
    finish_target_minutes: Mapped[int] = mapped_column(nullable=False, default=0)
    critical_path: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    warnings: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    tasks: Mapped[list["TaskScheduleRecordModel"]] = relationship(
        "TaskScheduleRecordModel",
        back_populates="run",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="TaskScheduleRecordModel.position",
    )

    def to_dto(self):
        from schedule_kernel.domain.schedule import (
            ScheduleResult,
            ScheduleWarning,
            WarningKind,
        )
        from schedule_kernel.domain.types import ProjectScope

        return ScheduleResult(
            scope=ProjectScope(self.organization_id, self.workspace_id, self.project_id),
            anchor=self.anchor_at,
            project_finish_minutes=self.project_finish_minutes,
            finish_target_minutes=self.finish_target_minutes,
            tasks=tuple(t.to_dto() for t in self.tasks),
            critical_path=tuple(self.critical_path),
            warnings=tuple(
                ScheduleWarning(
                    kind=WarningKind(w["kind"]),
                    task_id=w["task_id"],
                    message=w["message"],
                    minutes=w["minutes"],
                )
                for w in self.warnings
            ),
            input_fingerprint=self.input_fingerprint,
            project_finish=self.project_finish_at,
        )

    def __repr__(self) -> str:
        return f"<ScheduleRunModel {self.project_id} {self.input_fingerprint[:12]}>"


class TaskScheduleRecordModel(Base):
    """Per-task CPM figures of a published run."""

    __tablename__ = "schedule_task_results"

    __table_args__ = (
        UniqueConstraint("run_id", "task_id", name="uq_schedule_task_result_task"),
        Index("idx_schedule_task_result_run", "run_id"),
    )

    run_id: Mapped[UUID] = mapped_column(
        ForeignKey("schedule_runs.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(nullable=False)
    task_id: Mapped[str] = mapped_column(String(255), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(nullable=False)
    early_start: Mapped[int] = mapped_column(nullable=False)
    early_finish: Mapped[int] = mapped_column(nullable=False)
    late_start: Mapped[int] = mapped_column(nullable=False)
    late_finish: Mapped[int] = mapped_column(nullable=False)
    total_float_minutes: Mapped[int] = mapped_column(nullable=False)
    free_float_minutes: Mapped[int] = mapped_column(nullable=False)
    is_critical: Mapped[bool] = mapped_column(Boolean, nullable=False)
    is_milestone: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    constraint_violated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    early_start_at: Mapped[datetime | None] = mapped_column(nullable=True)
    early_finish_at: Mapped[datetime | None] = mapped_column(nullable=True)
    late_start_at: Mapped[datetime | None] = mapped_column(nullable=True)
    late_finish_at: Mapped[datetime | None] = mapped_column(nullable=True)

    run: Mapped["ScheduleRunModel"] = relationship(
        "ScheduleRunModel",
        back_populates="tasks",
    )

    def to_dto(self):
        from schedule_kernel.domain.schedule import TaskSchedule

        return TaskSchedule(
            task_id=self.task_id,
            duration_minutes=self.duration_minutes,
            early_start=self.early_start,
            early_finish=self.early_finish,
            late_start=self.late_start,
            late_finish=self.late_finish,
            total_float_minutes=self.total_float_minutes,
            free_float_minutes=self.free_float_minutes,
            is_critical=self.is_critical,
            is_milestone=self.is_milestone,
            constraint_violated=self.constraint_violated,
            early_start_at=self.early_start_at,
            early_finish_at=self.early_finish_at,
            late_start_at=self.late_start_at,
            late_finish_at=self.late_finish_at,
        )

    @classmethod
    def from_dto(cls, dto, position: int) -> "TaskScheduleRecordModel":
        return cls(
            position=position,
            task_id=dto.task_id,
            duration_minutes=dto.duration_minutes,
            early_start=dto.early_start,
            early_finish=dto.early_finish,
            late_start=dto.late_start,
            late_finish=dto.late_finish,
            total_float_minutes=dto.total_float_minutes,
            free_float_minutes=dto.free_float_minutes,
            is_critical=dto.is_critical,
            is_milestone=dto.is_milestone,
            constraint_violated=dto.constraint_violated,
            early_start_at=dto.early_start_at,
            early_finish_at=dto.early_finish_at,
            late_start_at=dto.late_start_at,
            late_finish_at=dto.late_finish_at,
        )

    def __repr__(self) -> str:
        return f"<TaskScheduleRecordModel {self.task_id}>"
