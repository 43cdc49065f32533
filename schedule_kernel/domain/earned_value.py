"""
Earned Value domain models.

Invariants enforced:
    * All monetary fields use ``Decimal`` -- NEVER ``float``.
    * CPI / SPI are ``float`` and ``None`` when their denominator is zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from schedule_kernel.domain.types import ProjectScope


@dataclass(frozen=True)
class EarnedValueMetrics:
    """EVM figures as of one date, before persistence."""

    as_of_date: date
    pv: Decimal   # Planned Value (BCWS)
    ev: Decimal   # Earned Value (BCWP)
    ac: Decimal   # Actual Cost (ACWP)
    bac: Decimal  # Budget at Completion
    eac: Decimal  # Estimate at Completion
    etc: Decimal  # Estimate to Complete
    vac: Decimal  # Variance at Completion
    cv: Decimal   # Cost Variance
    sv: Decimal   # Schedule Variance
    cpi: float | None = None
    spi: float | None = None


@dataclass(frozen=True)
class EarnedValueSnapshot:
    """A persisted, per-day EVM snapshot for one project."""

    snapshot_id: UUID
    scope: ProjectScope
    metrics: EarnedValueMetrics
    baseline_id: UUID | None = None

    @property
    def as_of_date(self) -> date:
        return self.metrics.as_of_date
