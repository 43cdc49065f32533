"""ORM models.  Importing this package registers every table on Base.metadata."""

from schedule_kernel.models.baseline import BaselineItemModel, ScheduleBaselineModel
from schedule_kernel.models.earned_value import EarnedValueSnapshotModel
from schedule_kernel.models.schedule_result import ScheduleRunModel, TaskScheduleRecordModel

__all__ = [
    "BaselineItemModel",
    "EarnedValueSnapshotModel",
    "ScheduleBaselineModel",
    "ScheduleRunModel",
    "TaskScheduleRecordModel",
]
