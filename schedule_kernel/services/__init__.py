"""Kernel persistence services.  Each takes a Session; the caller commits."""

from schedule_kernel.services.baseline_service import BaselineService
from schedule_kernel.services.earned_value_service import EarnedValueService
from schedule_kernel.services.schedule_result_store import ScheduleResultStore

__all__ = [
    "BaselineService",
    "EarnedValueService",
    "ScheduleResultStore",
]
