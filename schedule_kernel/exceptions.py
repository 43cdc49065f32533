"""
Typed Exception Hierarchy for the Schedule Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the engine (the CRUD layer, the recompute coordinator, operators)
must react to failures by category, not by parsing messages:

  - A structural error means the task graph itself is broken and no schedule
    can be produced until a user edits it.
  - A feasibility error means a schedule exists but is not trustworthy enough
    for the requested operation (e.g. baselining).
  - A storage error may be transient and worth one local retry.

Every exception therefore:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (task ids, cycle paths, lags)

Example:
    try:
        service.recompute(scope)
    except CycleDetectedError as e:
        api_response(code=e.code, cycle=e.cycle)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ScheduleKernelError (base)
    |
    +-- StructuralError
    |   +-- DanglingEdgeError
    |   +-- DuplicateEdgeError
    |   +-- SelfLoopError
    |   +-- CycleDetectedError
    |   +-- LagOutOfRangeError
    |   +-- InvalidTaskError
    |   +-- ScopeViolationError
    |   +-- GraphTooLargeError
    |   +-- MissingScheduleAnchorError
    |
    +-- FeasibilityError
    |   +-- NoFeasibleScheduleError
    |
    +-- BaselineError
    |   +-- BaselineNotFoundError
    |   +-- BaselineEmptyError
    |   +-- ActiveBaselinePurgeError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- StorageError
    |   +-- TransientStorageError
    |
    +-- RecomputeError
    |   +-- RecomputeSupersededError
    |   +-- RecomputeFailedError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                     | When Raised
-------------|--------------------------|--------------------------------------------
Structural   | DANGLING_EDGE            | Edge endpoint missing, deleted, or foreign
             | DUPLICATE_EDGE           | Second edge for the same ordered pair
             | SELF_LOOP                | Edge from a task to itself
             | CYCLE_DETECTED           | Dependency cycle (ordered task ids)
             | LAG_OUT_OF_RANGE         | |lag| above the configured bound
             | INVALID_TASK             | Bad dates, percent, costs or constraint
             | SCOPE_VIOLATION          | Task scoped to another org/workspace/project
             | GRAPH_TOO_LARGE          | Task or edge count above the ceiling
             | MISSING_SCHEDULE_ANCHOR  | No schedule-from date and no planned start
-------------|--------------------------|--------------------------------------------
Feasibility  | NO_FEASIBLE_SCHEDULE     | Negative float when baselining
-------------|--------------------------|--------------------------------------------
Baseline     | BASELINE_NOT_FOUND       | Unknown baseline id
             | BASELINE_EMPTY           | Baselining a project with no tasks
             | ACTIVE_BASELINE_PURGE    | Purging the active baseline
-------------|--------------------------|--------------------------------------------
Immutability | IMMUTABILITY_VIOLATION   | Mutating a locked baseline or its items
-------------|--------------------------|--------------------------------------------
Storage      | TRANSIENT_STORAGE        | Snapshot read failed, retry may succeed
-------------|--------------------------|--------------------------------------------
Recompute    | RECOMPUTE_SUPERSEDED     | Newer edit arrived mid-computation
             | RECOMPUTE_FAILED         | Coordinator gave up after local retries
-------------|--------------------------|--------------------------------------------
Config       | CONFIGURATION_ERROR      | Engine configuration invalid or missing
"""

from __future__ import annotations


class ScheduleKernelError(Exception):
    """
    Base exception for all schedule kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SCHEDULE_KERNEL_ERROR"


# Structural exceptions


class StructuralError(ScheduleKernelError):
    """The task graph is malformed; no schedule can be computed."""

    code: str = "STRUCTURAL_ERROR"


class DanglingEdgeError(StructuralError):
    """An edge references a task outside the loaded project or a deleted task."""

    code: str = "DANGLING_EDGE"

    def __init__(self, predecessor_id: str, successor_id: str, missing_task_id: str):
        self.predecessor_id = predecessor_id
        self.successor_id = successor_id
        self.missing_task_id = missing_task_id
        super().__init__(
            f"Dependency {predecessor_id} -> {successor_id} references "
            f"unknown or deleted task {missing_task_id}"
        )


class DuplicateEdgeError(StructuralError):
    """More than one edge for the same (predecessor, successor) pair."""

    code: str = "DUPLICATE_EDGE"

    def __init__(self, predecessor_id: str, successor_id: str):
        self.predecessor_id = predecessor_id
        self.successor_id = successor_id
        super().__init__(
            f"Duplicate dependency {predecessor_id} -> {successor_id}"
        )


class SelfLoopError(StructuralError):
    """A task depends on itself."""

    code: str = "SELF_LOOP"

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} depends on itself")


class CycleDetectedError(StructuralError):
    """
    The dependency graph contains a cycle.

    ``cycle`` lists the task ids in traversal order; the last task depends
    back on the first (A -> B -> C -> A is reported as [A, B, C]).
    """

    code: str = "CYCLE_DETECTED"

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        path_str = " -> ".join([*cycle, cycle[0]]) if cycle else ""
        super().__init__(f"Dependency cycle detected: {path_str}")


class LagOutOfRangeError(StructuralError):
    """Edge lag exceeds the configured bound."""

    code: str = "LAG_OUT_OF_RANGE"

    def __init__(
        self,
        predecessor_id: str,
        successor_id: str,
        lag_minutes: int,
        max_lag_minutes: int,
    ):
        self.predecessor_id = predecessor_id
        self.successor_id = successor_id
        self.lag_minutes = lag_minutes
        self.max_lag_minutes = max_lag_minutes
        super().__init__(
            f"Lag {lag_minutes} on {predecessor_id} -> {successor_id} "
            f"outside +/-{max_lag_minutes} minutes"
        )


class InvalidTaskError(StructuralError):
    """A task carries field values that violate the data model."""

    code: str = "INVALID_TASK"

    def __init__(self, task_id: str, reason: str):
        self.task_id = task_id
        self.reason = reason
        super().__init__(f"Invalid task {task_id}: {reason}")


class ScopeViolationError(StructuralError):
    """A task belongs to a different organization, workspace or project."""

    code: str = "SCOPE_VIOLATION"

    def __init__(self, task_id: str, expected_scope: str, actual_scope: str):
        self.task_id = task_id
        self.expected_scope = expected_scope
        self.actual_scope = actual_scope
        super().__init__(
            f"Task {task_id} scoped to {actual_scope}, expected {expected_scope}"
        )


class GraphTooLargeError(StructuralError):
    """Task or edge count exceeds the configured ceiling."""

    code: str = "GRAPH_TOO_LARGE"

    def __init__(self, kind: str, count: int, limit: int):
        self.kind = kind
        self.count = count
        self.limit = limit
        super().__init__(f"Project has {count} {kind}, limit is {limit}")


class MissingScheduleAnchorError(StructuralError):
    """No schedule-from date and no planned start to anchor the forward pass."""

    code: str = "MISSING_SCHEDULE_ANCHOR"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(
            f"Project {project_id} has no schedule-from date and no task "
            f"with a planned start"
        )


# Feasibility exceptions


class FeasibilityError(ScheduleKernelError):
    """A schedule was computed but cannot be used for the requested operation."""

    code: str = "FEASIBILITY_ERROR"


class NoFeasibleScheduleError(FeasibilityError):
    """Negative total float found while creating a baseline."""

    code: str = "NO_FEASIBLE_SCHEDULE"

    def __init__(self, project_id: str, negative_float_task_ids: list[str]):
        self.project_id = project_id
        self.negative_float_task_ids = negative_float_task_ids
        shown = ", ".join(negative_float_task_ids[:10])
        super().__init__(
            f"Project {project_id} has {len(negative_float_task_ids)} task(s) "
            f"with negative float: {shown}"
        )


# Baseline exceptions


class BaselineError(ScheduleKernelError):
    """Base exception for baseline errors."""

    code: str = "BASELINE_ERROR"


class BaselineNotFoundError(BaselineError):
    """Baseline with given ID was not found."""

    code: str = "BASELINE_NOT_FOUND"

    def __init__(self, baseline_id: str):
        self.baseline_id = baseline_id
        super().__init__(f"Baseline not found: {baseline_id}")


class BaselineEmptyError(BaselineError):
    """A baseline requires at least one task."""

    code: str = "BASELINE_EMPTY"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project {project_id} has no tasks to baseline")


class ActiveBaselinePurgeError(BaselineError):
    """The active baseline cannot be purged."""

    code: str = "ACTIVE_BASELINE_PURGE"

    def __init__(self, baseline_id: str):
        self.baseline_id = baseline_id
        super().__init__(
            f"Baseline {baseline_id} is active; activate another baseline first"
        )


# Immutability exceptions


class ImmutabilityError(ScheduleKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )


# Storage exceptions


class StorageError(ScheduleKernelError):
    """Base exception for storage boundary failures."""

    code: str = "STORAGE_ERROR"


class TransientStorageError(StorageError):
    """A storage read failed in a way that a retry may fix."""

    code: str = "TRANSIENT_STORAGE"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Transient storage failure during {operation}: {reason}")


# Recompute exceptions


class RecomputeError(ScheduleKernelError):
    """Base exception for recompute coordination."""

    code: str = "RECOMPUTE_ERROR"


class RecomputeSupersededError(RecomputeError):
    """A newer edit arrived while the computation was in flight."""

    code: str = "RECOMPUTE_SUPERSEDED"

    def __init__(self, project_id: str, generation: int):
        self.project_id = project_id
        self.generation = generation
        super().__init__(
            f"Recompute of project {project_id} (generation {generation}) superseded"
        )


class RecomputeFailedError(RecomputeError):
    """The coordinator moved the project to FAILED."""

    code: str = "RECOMPUTE_FAILED"

    def __init__(self, project_id: str, reason: str):
        self.project_id = project_id
        self.reason = reason
        super().__init__(f"Recompute of project {project_id} failed: {reason}")


# Configuration exceptions


class ConfigurationError(ScheduleKernelError):
    """Engine configuration is missing or invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, reason: str, source: str | None = None):
        self.reason = reason
        self.source = source
        where = f" ({source})" if source else ""
        super().__init__(f"Invalid engine configuration{where}: {reason}")
