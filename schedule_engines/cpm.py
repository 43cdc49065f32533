"""
schedule_engines.cpm -- Critical Path Method forward/backward pass engine.

Responsibility:
    Compute early/late start and finish, total float and free float for
    every task of a validated ``ProjectGraph``; derive the critical path,
    the project finish and the feasibility warnings.

Architecture position:
    Engines -- pure function, zero I/O.  The graph builder has already
    rejected every structural defect, so this module never raises for
    input shape; it only raises when its checkpoint callback does.

Invariants enforced:
    - All arithmetic is on integer minutes from the anchor; ``is_critical``
      is ``total_float == 0`` with no tolerance.
    - ES >= pred.EF + lag for every edge and LF <= succ.LS - lag for every
      edge, subject to the constraint bounds.
    - No task starts before the anchor.
    - Tasks are emitted in the graph's deterministic topological order, so
      identical graphs give ``==`` results.

Failure modes:
    - ``checkpoint`` is invoked every ``checkpoint_interval`` tasks in each
      pass; any exception it raises (``RecomputeSupersededError`` from the
      coordinator) aborts the computation with nothing returned.
    - Negative float and constraint violations are reported as warnings,
      never raised.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from schedule_engines.constraints import ConstraintBounds, UNCONSTRAINED, resolve_constraint
from schedule_engines.graph import ProjectGraph
from schedule_engines.timeline import at_minutes, minutes_between
from schedule_engines.tracer import traced_engine
from schedule_kernel.domain.schedule import (
    ScheduleResult,
    ScheduleWarning,
    TaskSchedule,
    WarningKind,
)
from schedule_kernel.logging_config import get_logger

logger = get_logger("engines.cpm")

DEFAULT_CHECKPOINT_INTERVAL = 1024


def _maybe_checkpoint(
    index: int,
    checkpoint: Callable[[], None] | None,
    interval: int,
) -> None:
    if checkpoint is not None and index % interval == 0:
        checkpoint()


def _as_datetime(anchor: datetime | None, minutes: int) -> datetime | None:
    return at_minutes(anchor, minutes) if anchor is not None else None


def _summarize(result: ScheduleResult) -> dict:
    return {
        "task_count": len(result.tasks),
        "critical_path_length": len(result.critical_path),
        "warning_count": len(result.warnings),
    }


@traced_engine("cpm", "1.0", fingerprint_fields=("graph",), summarize=_summarize)
def compute_schedule(
    *,
    graph: ProjectGraph,
    checkpoint: Callable[[], None] | None = None,
    checkpoint_interval: int = DEFAULT_CHECKPOINT_INTERVAL,
) -> ScheduleResult:
    """
    Run the forward and backward passes over ``graph``.

    Args:
        graph: Validated project graph.
        checkpoint: Optional cooperative-cancellation hook; raise from it
            to abort.
        checkpoint_interval: Tasks processed between checkpoint calls.

    Returns:
        ScheduleResult with tasks in topological order.
    """
    anchor = graph.anchor
    order = graph.order
    interval = max(1, checkpoint_interval)

    bounds: dict[str, ConstraintBounds] = {}
    early_start: dict[str, int] = {}
    early_finish: dict[str, int] = {}
    violations: dict[str, int] = {}

    # Forward pass
    for index, tid in enumerate(order):
        _maybe_checkpoint(index, checkpoint, interval)
        node = graph.nodes[tid]
        duration = node.duration_minutes

        b = (
            resolve_constraint(node.task, duration, anchor)
            if anchor is not None else UNCONSTRAINED
        )
        bounds[tid] = b

        driven = 0
        for pred, lag in graph.predecessors[tid]:
            driven = max(driven, early_finish[pred] + lag)

        es = b.clamp_start(driven)
        ef = es + duration
        early_start[tid] = es
        early_finish[tid] = ef
        violation = b.violation_minutes(ef)
        if violation:
            violations[tid] = violation

    project_finish = max(early_finish.values(), default=0)
    if graph.deadline is not None and anchor is not None:
        finish_target = minutes_between(anchor, graph.deadline)
    else:
        finish_target = project_finish

    late_start: dict[str, int] = {}
    late_finish: dict[str, int] = {}

    # Backward pass
    for index, tid in enumerate(reversed(order)):
        _maybe_checkpoint(index, checkpoint, interval)
        succs = graph.successors[tid]
        if succs:
            driven = min(late_start[s] - lag for s, lag in succs)
        else:
            driven = finish_target
        lf = bounds[tid].clamp_finish(driven)
        late_finish[tid] = lf
        late_start[tid] = lf - graph.nodes[tid].duration_minutes

    tasks: list[TaskSchedule] = []
    warnings: list[ScheduleWarning] = []
    critical: list[str] = []

    for tid in order:
        node = graph.nodes[tid]
        es, ef = early_start[tid], early_finish[tid]
        ls, lf = late_start[tid], late_finish[tid]
        total_float = ls - es

        succs = graph.successors[tid]
        if succs:
            free_float = min(early_start[s] - lag for s, lag in succs) - ef
        else:
            free_float = finish_target - ef

        is_critical = total_float == 0
        if is_critical:
            critical.append(tid)

        if node.duration_missing:
            warnings.append(ScheduleWarning(
                WarningKind.MISSING_DURATION, tid,
                "task has no planned dates or duration; scheduled as zero-length",
            ))
        if tid in violations:
            warnings.append(ScheduleWarning(
                WarningKind.CONSTRAINT_VIOLATED, tid,
                f"{bounds[tid].constraint_type.value} violated by "
                f"{violations[tid]} minutes",
                violations[tid],
            ))
        if total_float < 0:
            warnings.append(ScheduleWarning(
                WarningKind.NEGATIVE_FLOAT, tid,
                f"total float is {total_float} minutes",
                total_float,
            ))

        tasks.append(TaskSchedule(
            task_id=tid,
            duration_minutes=node.duration_minutes,
            early_start=es,
            early_finish=ef,
            late_start=ls,
            late_finish=lf,
            total_float_minutes=total_float,
            free_float_minutes=free_float,
            is_critical=is_critical,
            is_milestone=node.task.is_milestone,
            constraint_violated=tid in violations,
            early_start_at=_as_datetime(anchor, es),
            early_finish_at=_as_datetime(anchor, ef),
            late_start_at=_as_datetime(anchor, ls),
            late_finish_at=_as_datetime(anchor, lf),
        ))

    result = ScheduleResult(
        scope=graph.scope,
        anchor=anchor,
        project_finish_minutes=project_finish,
        finish_target_minutes=finish_target,
        tasks=tuple(tasks),
        critical_path=tuple(critical),
        warnings=tuple(warnings),
        input_fingerprint=graph.fingerprint,
        project_finish=_as_datetime(anchor, project_finish),
    )

    logger.debug(
        "schedule_computed",
        extra={
            **graph.scope.log_fields(),
            "task_count": len(tasks),
            "critical_count": len(critical),
            "project_finish_minutes": project_finish,
            "warning_count": len(warnings),
        },
    )
    return result
