"""
SQLAlchemy ORM persistence model for earned-value snapshots.

One row per project per ``as_of_date``; recomputing a date overwrites the
row in place.  Money columns are Numeric(38, 9); CPI / SPI are nullable
floats (NULL when undefined).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, Float, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from schedule_kernel.db.base import TrackedBase


class EarnedValueSnapshotModel(TrackedBase):
    """
    A dated EVM snapshot.

    Maps to the ``EarnedValueSnapshot`` DTO.
    """

    __tablename__ = "earned_value_snapshots"

    __table_args__ = (
        UniqueConstraint("project_id", "as_of_date", name="uq_earned_value_project_date"),
        Index("idx_earned_value_project", "project_id"),
    )

    organization_id: Mapped[UUID] = mapped_column(nullable=False)
    workspace_id: Mapped[UUID] = mapped_column(nullable=False)
    project_id: Mapped[UUID] = mapped_column(nullable=False)
    baseline_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("schedule_baselines.id", ondelete="SET NULL"),
        nullable=True,
    )
    as_of_date: Mapped[date] = mapped_column(Date, nullable=False)
    computed_at: Mapped[datetime] = mapped_column(nullable=False)

    pv: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    ev: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    ac: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    bac: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    eac: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    etc: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    vac: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    cv: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    sv: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    cpi: Mapped[float | None] = mapped_column(Float, nullable=True)
    spi: Mapped[float | None] = mapped_column(Float, nullable=True)

    def apply_metrics(self, metrics) -> None:
        """Overwrite every computed figure from an ``EarnedValueMetrics``."""
        self.as_of_date = metrics.as_of_date
        self.pv = metrics.pv
        self.ev = metrics.ev
        self.ac = metrics.ac
        self.bac = metrics.bac
        self.eac = metrics.eac
        self.etc = metrics.etc
        self.vac = metrics.vac
        self.cv = metrics.cv
        self.sv = metrics.sv
        self.cpi = metrics.cpi
        self.spi = metrics.spi

    def to_dto(self):
        from schedule_kernel.domain.earned_value import (
            EarnedValueMetrics,
            EarnedValueSnapshot,
        )
        from schedule_kernel.domain.types import ProjectScope

        return EarnedValueSnapshot(
            snapshot_id=self.id,
            scope=ProjectScope(self.organization_id, self.workspace_id, self.project_id),
            metrics=EarnedValueMetrics(
                as_of_date=self.as_of_date,
                pv=self.pv,
                ev=self.ev,
                ac=self.ac,
                bac=self.bac,
                eac=self.eac,
                etc=self.etc,
                vac=self.vac,
                cv=self.cv,
                sv=self.sv,
                cpi=self.cpi,
                spi=self.spi,
            ),
            baseline_id=self.baseline_id,
        )

    def __repr__(self) -> str:
        return f"<EarnedValueSnapshotModel {self.project_id} {self.as_of_date}>"
