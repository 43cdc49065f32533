"""
schedule_engines.graph -- Graph builder, cycle detector and topological order.

Responsibility:
    Turn a ``ProjectSnapshot`` into a validated, immutable ``ProjectGraph``:
    task nodes with resolved durations, successor/predecessor adjacency
    carrying lags, and a deterministic topological order.  Provides the
    generic acyclic-graph validator (``find_cycle`` / ``ensure_acyclic``)
    used for dependency graphs and reusable for any hashable node type.

Architecture position:
    Engines -- pure functions, zero I/O.  Called by the CPM core and the
    schedule service before any pass runs.

Invariants enforced:
    - No self-loops, no duplicate (predecessor, successor) pairs, every
      edge endpoint is a live task of the same project, lag within
      +/- ``max_lag_minutes``.
    - The graph is acyclic; cycle detection is an iterative three-colour
      DFS in O(V + E) with no recursion.
    - Topological order is Kahn's algorithm with a lexical heap, so equal
      inputs always yield the same order.

Failure modes:
    - Every violation raises a typed ``StructuralError`` subclass naming
      the offending task(s).  Validation stops at the first violation;
      nothing is partially built.
"""

from __future__ import annotations

import hashlib
import heapq
import json
from collections.abc import Callable, Hashable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TypeVar

from schedule_engines.tracer import traced_engine
from schedule_engines.timeline import minutes_between
from schedule_kernel.domain.types import ProjectScope, ProjectSnapshot, TaskSnapshot
from schedule_kernel.exceptions import (
    CycleDetectedError,
    DanglingEdgeError,
    DuplicateEdgeError,
    GraphTooLargeError,
    InvalidTaskError,
    LagOutOfRangeError,
    MissingScheduleAnchorError,
    ScopeViolationError,
    SelfLoopError,
)
from schedule_kernel.logging_config import get_logger

logger = get_logger("engines.graph")

N = TypeVar("N", bound=Hashable)

DEFAULT_MAX_LAG_MINUTES = 43_200
DEFAULT_MAX_TASKS = 50_000
DEFAULT_MAX_EDGES = 50_000

_WHITE, _GRAY, _BLACK = 0, 1, 2


@dataclass(frozen=True)
class TaskNode:
    """A live task plus its resolved duration."""

    task: TaskSnapshot
    duration_minutes: int
    duration_missing: bool = False

    @property
    def task_id(self) -> str:
        return self.task.task_id


@dataclass(frozen=True, eq=False)
class ProjectGraph:
    """
    Validated dependency graph of one project.

    Adjacency tuples hold ``(neighbour_id, lag_minutes)`` sorted by
    neighbour id.  ``order`` is the topological order used by both passes.
    """

    scope: ProjectScope
    nodes: Mapping[str, TaskNode]
    successors: Mapping[str, tuple[tuple[str, int], ...]]
    predecessors: Mapping[str, tuple[tuple[str, int], ...]]
    order: tuple[str, ...]
    anchor: datetime | None
    deadline: datetime | None
    fingerprint: str

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return sum(len(s) for s in self.successors.values())


# ---------------------------------------------------------------------------
# Generic acyclic-graph validation
# ---------------------------------------------------------------------------


def find_cycle(
    nodes: Iterable[N],
    successors: Callable[[N], Iterable[N]],
) -> list[N] | None:
    """
    Return one cycle as an ordered node list, or None if the graph is acyclic.

    Iterative DFS with white/gray/black marking.  Roots are visited in the
    order ``nodes`` yields them and neighbours in the order ``successors``
    yields them, so the reported cycle is deterministic for sorted inputs.
    The returned list starts at the node where the back edge lands; the
    last element has an edge back to the first.
    """
    color: dict[N, int] = {}

    for root in nodes:
        if color.get(root, _WHITE) != _WHITE:
            continue

        color[root] = _GRAY
        path: list[N] = [root]
        position: dict[N, int] = {root: 0}
        stack = [(root, iter(successors(root)))]

        while stack:
            node, neighbours = stack[-1]
            descended = False
            for nxt in neighbours:
                state = color.get(nxt, _WHITE)
                if state == _GRAY:
                    return path[position[nxt]:]
                if state == _WHITE:
                    color[nxt] = _GRAY
                    position[nxt] = len(path)
                    path.append(nxt)
                    stack.append((nxt, iter(successors(nxt))))
                    descended = True
                    break
            if not descended:
                stack.pop()
                color[node] = _BLACK
                path.pop()
                del position[node]

    return None


def ensure_acyclic(
    nodes: Iterable[N],
    successors: Callable[[N], Iterable[N]],
) -> None:
    """Raise ``CycleDetectedError`` if the graph contains a cycle."""
    cycle = find_cycle(nodes, successors)
    if cycle is not None:
        raise CycleDetectedError([str(n) for n in cycle])


def topological_order(
    nodes: Iterable[str],
    successors: Mapping[str, Iterable[tuple[str, int]]],
) -> tuple[str, ...]:
    """
    Kahn's algorithm; among ready nodes the lexically smallest goes first.

    The caller guarantees acyclicity.
    """
    node_list = list(nodes)
    in_degree = {n: 0 for n in node_list}
    for n in node_list:
        for succ, _lag in successors.get(n, ()):
            in_degree[succ] += 1

    ready = [n for n, d in in_degree.items() if d == 0]
    heapq.heapify(ready)
    order: list[str] = []
    while ready:
        n = heapq.heappop(ready)
        order.append(n)
        for succ, _lag in successors.get(n, ()):
            in_degree[succ] -= 1
            if in_degree[succ] == 0:
                heapq.heappush(ready, succ)
    return tuple(order)


# ---------------------------------------------------------------------------
# Graph builder
# ---------------------------------------------------------------------------


def _validate_task(task: TaskSnapshot, scope: ProjectScope) -> None:
    if task.scope != scope:
        raise ScopeViolationError(task.task_id, str(scope), str(task.scope))
    if not task.task_id:
        raise InvalidTaskError(task.task_id, "task id is empty")
    if not 0 <= task.percent_complete <= 100:
        raise InvalidTaskError(
            task.task_id,
            f"percent_complete {task.percent_complete} outside 0..100",
        )
    if (
        task.planned_start is not None
        and task.planned_end is not None
        and task.planned_end < task.planned_start
    ):
        raise InvalidTaskError(task.task_id, "planned_end precedes planned_start")
    if (
        task.actual_start is not None
        and task.actual_end is not None
        and task.actual_end < task.actual_start
    ):
        raise InvalidTaskError(task.task_id, "actual_end precedes actual_start")
    if task.budgeted_cost < Decimal("0"):
        raise InvalidTaskError(task.task_id, "budgeted_cost is negative")
    if task.actual_cost < Decimal("0"):
        raise InvalidTaskError(task.task_id, "actual_cost is negative")
    if task.constraint_type.requires_date and task.constraint_date is None:
        raise InvalidTaskError(
            task.task_id,
            f"constraint {task.constraint_type.value} requires a constraint_date",
        )
    if task.duration_minutes is not None and task.duration_minutes < 0:
        raise InvalidTaskError(task.task_id, "duration_minutes is negative")


def _resolve_duration(task: TaskSnapshot) -> tuple[int, bool]:
    """Duration in minutes and whether it had to default to zero."""
    if task.is_milestone:
        return 0, False
    if task.is_scheduled:
        return minutes_between(task.planned_start, task.planned_end), False
    if task.duration_minutes is not None:
        return task.duration_minutes, False
    return 0, True


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _graph_fingerprint(
    nodes: Mapping[str, TaskNode],
    edges: list[tuple[str, str, int]],
    anchor: datetime | None,
    deadline: datetime | None,
) -> str:
    """SHA-256 over everything that influences the computed schedule."""
    payload = {
        "anchor": _iso(anchor),
        "deadline": _iso(deadline),
        "tasks": [
            [
                tid,
                node.duration_minutes,
                node.task.is_milestone,
                node.task.constraint_type.value,
                _iso(node.task.constraint_date),
            ]
            for tid, node in sorted(nodes.items())
        ],
        "edges": sorted(edges),
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@traced_engine(
    "graph_builder",
    "1.0",
    summarize=lambda g: {"task_count": len(g.nodes), "edge_count": g.edge_count},
)
def build_project_graph(
    snapshot: ProjectSnapshot,
    *,
    max_lag_minutes: int = DEFAULT_MAX_LAG_MINUTES,
    max_tasks: int = DEFAULT_MAX_TASKS,
    max_edges: int = DEFAULT_MAX_EDGES,
) -> ProjectGraph:
    """
    Validate a snapshot and build its ``ProjectGraph``.

    Soft-deleted tasks are dropped; an edge that still references one is
    dangling.  The anchor is ``snapshot.schedule_from`` or, when absent,
    the earliest planned start among live tasks.

    Raises:
        StructuralError: any subclass, for the first violation found.
    """
    scope = snapshot.scope
    live = snapshot.live_tasks

    if len(live) > max_tasks:
        raise GraphTooLargeError("tasks", len(live), max_tasks)
    if len(snapshot.edges) > max_edges:
        raise GraphTooLargeError("edges", len(snapshot.edges), max_edges)

    nodes: dict[str, TaskNode] = {}
    for task in sorted(live, key=lambda t: t.task_id):
        _validate_task(task, scope)
        if task.task_id in nodes:
            raise InvalidTaskError(task.task_id, "duplicate task id")
        duration, missing = _resolve_duration(task)
        nodes[task.task_id] = TaskNode(task, duration, missing)

    succ_lists: dict[str, list[tuple[str, int]]] = {tid: [] for tid in nodes}
    pred_lists: dict[str, list[tuple[str, int]]] = {tid: [] for tid in nodes}
    seen_pairs: set[tuple[str, str]] = set()
    edge_rows: list[tuple[str, str, int]] = []

    for edge in snapshot.edges:
        pred, succ = edge.predecessor_id, edge.successor_id
        if pred == succ:
            raise SelfLoopError(pred)
        for endpoint in (pred, succ):
            if endpoint not in nodes:
                raise DanglingEdgeError(pred, succ, endpoint)
        if abs(edge.lag_minutes) > max_lag_minutes:
            raise LagOutOfRangeError(pred, succ, edge.lag_minutes, max_lag_minutes)
        if (pred, succ) in seen_pairs:
            raise DuplicateEdgeError(pred, succ)
        seen_pairs.add((pred, succ))
        succ_lists[pred].append((succ, edge.lag_minutes))
        pred_lists[succ].append((pred, edge.lag_minutes))
        edge_rows.append((pred, succ, edge.lag_minutes))

    successors = {tid: tuple(sorted(s)) for tid, s in succ_lists.items()}
    predecessors = {tid: tuple(sorted(p)) for tid, p in pred_lists.items()}

    ensure_acyclic(nodes, lambda tid: (s for s, _lag in successors[tid]))
    order = topological_order(nodes, successors)

    anchor = snapshot.schedule_from
    if anchor is None and nodes:
        starts = [
            n.task.planned_start for n in nodes.values()
            if n.task.planned_start is not None
        ]
        if not starts:
            raise MissingScheduleAnchorError(str(scope.project_id))
        anchor = min(starts)

    graph = ProjectGraph(
        scope=scope,
        nodes=nodes,
        successors=successors,
        predecessors=predecessors,
        order=order,
        anchor=anchor,
        deadline=snapshot.deadline,
        fingerprint=_graph_fingerprint(nodes, edge_rows, anchor, snapshot.deadline),
    )

    logger.debug(
        "project_graph_built",
        extra={
            **scope.log_fields(),
            "task_count": len(nodes),
            "edge_count": len(edge_rows),
            "dropped_deleted": len(snapshot.tasks) - len(live),
        },
    )
    return graph
