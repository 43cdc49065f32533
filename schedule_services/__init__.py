"""
schedule_services -- the engine's surface to the CRUD layer.

Usage:
    from schedule_services import ScheduleService

    service = ScheduleService(data_source, get_session_factory())
    result = service.recompute(scope)
    baseline = service.create_baseline(scope, "Sprint 4 plan", actor_id)
    service.activate_baseline(baseline.baseline_id, actor_id)
    snapshot = service.compute_earned_value(scope, date(2026, 3, 31))
"""

from schedule_services.recompute_coordinator import (
    RecomputeCoordinator,
    RecomputeState,
    RecomputeStatus,
)
from schedule_services.schedule_service import ScheduleComputation, ScheduleService
from schedule_services.sources import ScheduleDataSource, ScheduleResultSink

__all__ = [
    "RecomputeCoordinator",
    "RecomputeState",
    "RecomputeStatus",
    "ScheduleComputation",
    "ScheduleDataSource",
    "ScheduleResultSink",
    "ScheduleService",
]
