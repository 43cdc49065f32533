"""
Module: schedule_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    higher layers (schedule_services, schedule_kernel.services).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import schedule_kernel (domain, exceptions, logging).
    MUST NOT import schedule_services.

Invariants enforced:
    - Purity: engines NEVER read the clock.  Anchors and as-of dates are
      passed in explicitly by the caller.
    - Integer-minute schedule arithmetic; Decimal money.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation is traced via ``@traced_engine`` (see
    ``schedule_engines.tracer``), emitting SCHEDULE_ENGINE_TRACE records.

Usage:
    from schedule_engines import build_project_graph, compute_schedule

    graph = build_project_graph(snapshot)
    result = compute_schedule(graph=graph)
"""

from schedule_engines.constraints import ConstraintBounds, resolve_constraint
from schedule_engines.cpm import compute_schedule
from schedule_engines.evm import calculate_metrics
from schedule_engines.graph import (
    ProjectGraph,
    TaskNode,
    build_project_graph,
    ensure_acyclic,
    find_cycle,
    topological_order,
)
from schedule_engines.tracer import traced_engine
from schedule_engines.variance import compare_to_baseline

__all__ = [
    "ConstraintBounds",
    "ProjectGraph",
    "TaskNode",
    "build_project_graph",
    "calculate_metrics",
    "compare_to_baseline",
    "compute_schedule",
    "ensure_acyclic",
    "find_cycle",
    "resolve_constraint",
    "topological_order",
    "traced_engine",
]
