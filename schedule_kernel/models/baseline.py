"""
SQLAlchemy ORM persistence models for schedule baselines.

Responsibility
--------------
Persist locked baseline headers (``schedule_baselines``) and their per-task
captured CPM figures (``schedule_baseline_items``).

Invariants enforced
-------------------
* At most one active baseline per project: partial unique index on
  ``project_id`` where ``is_active`` (PostgreSQL and SQLite).
* One item per (baseline, task).
* Items reference their baseline with ``ON DELETE CASCADE``; the ORM never
  deletes them itself (``passive_deletes``) and the immutability listeners
  reject direct updates or deletes.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from schedule_kernel.db.base import TrackedBase


class ScheduleBaselineModel(TrackedBase):
    """
    A locked schedule snapshot.

    Maps to the ``Baseline`` DTO in ``schedule_kernel.domain.baseline``.
    """

    __tablename__ = "schedule_baselines"

    __table_args__ = (
        Index(
            "uq_schedule_baseline_active",
            "project_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("idx_schedule_baseline_project", "project_id", "captured_at"),
    )

    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    workspace_id: Mapped[UUID] = mapped_column(nullable=False)
    project_id: Mapped[UUID] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    captured_at: Mapped[datetime] = mapped_column(nullable=False)
    item_count: Mapped[int] = mapped_column(nullable=False, default=0)
    project_finish_at: Mapped[datetime | None] = mapped_column(nullable=True)

    items: Mapped[list["BaselineItemModel"]] = relationship(
        "BaselineItemModel",
        back_populates="baseline",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="BaselineItemModel.task_id",
    )

    def to_dto(self, include_items: bool = True):
        from schedule_kernel.domain.baseline import Baseline
        from schedule_kernel.domain.types import ProjectScope

        return Baseline(
            baseline_id=self.id,
            scope=ProjectScope(self.organization_id, self.workspace_id, self.project_id),
            name=self.name,
            created_by=self.created_by_id,
            captured_at=self.captured_at,
            locked=self.locked,
            is_active=self.is_active,
            item_count=self.item_count,
            project_finish=self.project_finish_at,
            items=tuple(i.to_dto() for i in self.items) if include_items else (),
        )

    def __repr__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"<ScheduleBaselineModel {self.name} [{state}]>"


class BaselineItemModel(TrackedBase):
    """
    Captured CPM figures for one task in one baseline.

    Maps to the ``BaselineItem`` DTO.
    """

    __tablename__ = "schedule_baseline_items"

    __table_args__ = (
        UniqueConstraint("baseline_id", "task_id", name="uq_schedule_baseline_item_task"),
        Index("idx_schedule_baseline_item_baseline", "baseline_id"),
    )

    baseline_id: Mapped[UUID] = mapped_column(
        ForeignKey("schedule_baselines.id", ondelete="CASCADE"),
        nullable=False,
    )
    task_id: Mapped[str] = mapped_column(String(255), nullable=False)
    planned_start: Mapped[datetime] = mapped_column(nullable=False)
    planned_end: Mapped[datetime] = mapped_column(nullable=False)
    duration_minutes: Mapped[int] = mapped_column(nullable=False)
    critical_path: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    total_float_minutes: Mapped[int] = mapped_column(nullable=False)
    captured_at: Mapped[datetime] = mapped_column(nullable=False)

    baseline: Mapped["ScheduleBaselineModel"] = relationship(
        "ScheduleBaselineModel",
        back_populates="items",
    )

    def to_dto(self):
        from schedule_kernel.domain.baseline import BaselineItem

        return BaselineItem(
            task_id=self.task_id,
            planned_start=self.planned_start,
            planned_end=self.planned_end,
            duration_minutes=self.duration_minutes,
            critical_path=self.critical_path,
            total_float_minutes=self.total_float_minutes,
            captured_at=self.captured_at,
        )

    @classmethod
    def from_dto(cls, dto, baseline_id: UUID, created_by_id: UUID) -> "BaselineItemModel":
        return cls(
            baseline_id=baseline_id,
            task_id=dto.task_id,
            planned_start=dto.planned_start,
            planned_end=dto.planned_end,
            duration_minutes=dto.duration_minutes,
            critical_path=dto.critical_path,
            total_float_minutes=dto.total_float_minutes,
            captured_at=dto.captured_at,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<BaselineItemModel {self.task_id}>"
