"""
Domain layer of the schedule kernel -- pure data, zero I/O.

Re-exports the DTOs shared by engines and services.
"""

from schedule_kernel.domain.baseline import (
    Baseline,
    BaselineComparison,
    BaselineItem,
    BaselineSummary,
    BaselineTaskVariance,
)
from schedule_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from schedule_kernel.domain.earned_value import EarnedValueMetrics, EarnedValueSnapshot
from schedule_kernel.domain.schedule import (
    ScheduleResult,
    ScheduleWarning,
    TaskSchedule,
    WarningKind,
)
from schedule_kernel.domain.types import (
    ConstraintType,
    DependencyEdge,
    ProjectScope,
    ProjectSnapshot,
    TaskSnapshot,
)

__all__ = [
    "Baseline",
    "BaselineComparison",
    "BaselineItem",
    "BaselineSummary",
    "BaselineTaskVariance",
    "Clock",
    "ConstraintType",
    "DependencyEdge",
    "DeterministicClock",
    "EarnedValueMetrics",
    "EarnedValueSnapshot",
    "ProjectScope",
    "ProjectSnapshot",
    "ScheduleResult",
    "ScheduleWarning",
    "SystemClock",
    "TaskSchedule",
    "TaskSnapshot",
    "WarningKind",
]
