"""
schedule_engines.variance -- Current schedule vs. locked baseline.

Responsibility:
    Compare a freshly computed ``ScheduleResult`` with a ``Baseline`` and
    produce per-task start/end variances plus a project roll-up: tasks
    late, tasks early, maximum slip, and critical-path slip (movement of
    the project finish).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by ``ScheduleService.compare_baseline``.

Invariants enforced:
    - Variance is ``current - baseline`` in whole minutes; positive means
      later than baselined.
    - Items are ordered by task id; tasks that exist on only one side are
      reported in ``added_task_ids`` / ``removed_task_ids`` instead.
    - Purity: no clock access, no I/O.
"""

from __future__ import annotations

from schedule_engines.timeline import minutes_between
from schedule_engines.tracer import traced_engine
from schedule_kernel.domain.baseline import (
    Baseline,
    BaselineComparison,
    BaselineSummary,
    BaselineTaskVariance,
)
from schedule_kernel.domain.schedule import ScheduleResult
from schedule_kernel.logging_config import get_logger

logger = get_logger("engines.variance")


@traced_engine("baseline_variance", "1.0")
def compare_to_baseline(
    *,
    baseline: Baseline,
    schedule: ScheduleResult,
) -> BaselineComparison:
    """Per-task and project-level variance of ``schedule`` against ``baseline``."""
    current = schedule.by_task_id()
    captured = {item.task_id: item for item in baseline.items}

    variances: list[BaselineTaskVariance] = []
    for task_id in sorted(captured):
        task = current.get(task_id)
        if task is None:
            continue
        item = captured[task_id]
        variances.append(BaselineTaskVariance(
            task_id=task_id,
            baseline_start=item.planned_start,
            baseline_end=item.planned_end,
            current_start=task.early_start_at,
            current_end=task.early_finish_at,
            start_variance_minutes=minutes_between(item.planned_start, task.early_start_at),
            end_variance_minutes=minutes_between(item.planned_end, task.early_finish_at),
            was_critical=item.critical_path,
            is_critical=task.is_critical,
        ))

    baseline_finish = baseline.project_finish
    if baseline_finish is None and baseline.items:
        baseline_finish = max(item.planned_end for item in baseline.items)
    critical_path_slip = 0
    if baseline_finish is not None and schedule.project_finish is not None:
        critical_path_slip = minutes_between(baseline_finish, schedule.project_finish)

    summary = BaselineSummary(
        count_late=sum(1 for v in variances if v.end_variance_minutes > 0),
        count_early=sum(1 for v in variances if v.end_variance_minutes < 0),
        max_slip_minutes=max(
            (v.end_variance_minutes for v in variances if v.end_variance_minutes > 0),
            default=0,
        ),
        critical_path_slip_minutes=critical_path_slip,
    )

    comparison = BaselineComparison(
        baseline_id=baseline.baseline_id,
        baseline_name=baseline.name,
        items=tuple(variances),
        summary=summary,
        added_task_ids=tuple(sorted(set(current) - set(captured))),
        removed_task_ids=tuple(sorted(set(captured) - set(current))),
    )

    logger.debug(
        "baseline_compared",
        extra={
            "baseline_id": str(baseline.baseline_id),
            "count_late": summary.count_late,
            "max_slip_minutes": summary.max_slip_minutes,
            "critical_path_slip_minutes": critical_path_slip,
        },
    )
    return comparison
