"""
Schedule Service (``schedule_services.schedule_service``).

Responsibility
--------------
The API the CRUD layer calls: recompute a project's critical-path
schedule, capture / activate / compare / purge baselines, compute
earned-value snapshots, and receive mutation triggers.  Pure computation
is delegated to ``schedule_engines``; persistence to the kernel services.

Architecture position
---------------------
**Services layer** -- thin orchestration.  Owns the transaction boundary
of every public method (``session_scope``: commit on success, rollback on
exception) and routes all per-project work through one
``RecomputeCoordinator`` so CPM and EVM never run concurrently for the
same project.

Invariants enforced
-------------------
* Structural errors are raised before anything is written; no partial
  schedule is ever stored.
* Baseline creation runs a fresh CPM pass on a fresh snapshot and writes
  the baseline and all of its items in one transaction.
* A published schedule also refreshes today's EV snapshot when the project
  has an active baseline.
* All timestamps come from the injected ``Clock``.

Failure modes
-------------
* ``StructuralError`` subclasses from ``recompute`` / ``create_baseline``.
* ``NoFeasibleScheduleError`` from ``create_baseline`` under the ``reject``
  negative-float policy.
* ``BaselineNotFoundError`` / ``ActiveBaselinePurgeError`` from baseline
  operations.
* ``TransientStorageError`` after the configured read retries.
* ``RecomputeFailedError`` from ``wait_for_schedule`` when the background
  recompute ended in FAILED.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import Executor
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from schedule_config import EngineConfig, get_active_config
from schedule_engines.cpm import compute_schedule
from schedule_engines.evm import calculate_metrics
from schedule_engines.graph import build_project_graph
from schedule_engines.variance import compare_to_baseline
from schedule_kernel.db.engine import session_scope
from schedule_kernel.domain.baseline import Baseline, BaselineComparison
from schedule_kernel.domain.clock import Clock, SystemClock
from schedule_kernel.domain.earned_value import EarnedValueSnapshot
from schedule_kernel.domain.schedule import ScheduleResult
from schedule_kernel.domain.types import ProjectScope, ProjectSnapshot
from schedule_kernel.exceptions import RecomputeFailedError, ScopeViolationError
from schedule_kernel.logging_config import LogContext, get_logger
from schedule_kernel.services.baseline_service import BaselineService
from schedule_kernel.services.earned_value_service import EarnedValueService
from schedule_kernel.services.schedule_result_store import ScheduleResultStore
from schedule_services.recompute_coordinator import (
    RecomputeCoordinator,
    RecomputeState,
    RecomputeStatus,
    call_with_transient_retry,
)
from schedule_services.sources import ScheduleDataSource, ScheduleResultSink

logger = get_logger("services.schedule")


@dataclass(frozen=True)
class ScheduleComputation:
    """A computed schedule together with the snapshot it was computed from."""

    snapshot: ProjectSnapshot
    result: ScheduleResult


class ScheduleService:
    """
    Facade over the schedule and earned-value engine.

    Contract
    --------
    * ``recompute`` is synchronous and raises structural errors; the
      ``on_*`` triggers are asynchronous and coalesced.
    * ``compute_earned_value`` returns ``None`` when the project has no
      active baseline.

    Non-goals
    ---------
    * Does NOT move task dates (no leveling); float and conflicts are only
      reported.
    * Does NOT authorize callers; scope checks are the CRUD layer's job.
    """

    def __init__(
        self,
        data_source: ScheduleDataSource,
        session_factory: Callable[[], Session],
        config: EngineConfig | None = None,
        clock: Clock | None = None,
        result_sink: ScheduleResultSink | None = None,
        executor: Executor | None = None,
    ):
        self._source = data_source
        self._session_factory = session_factory
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()
        self._sink = result_sink
        self._coordinator: RecomputeCoordinator[ScheduleComputation] = RecomputeCoordinator(
            runner=self._compute,
            publisher=self._publish,
            executor=executor,
            worker_count=self._config.worker_count,
            storage_read_retries=self._config.storage_read_retries,
        )

    @property
    def coordinator(self) -> RecomputeCoordinator[ScheduleComputation]:
        return self._coordinator

    # =========================================================================
    # Schedule
    # =========================================================================

    def recompute(self, scope: ProjectScope) -> ScheduleResult:
        """Compute, store and return the schedule of ``scope`` now."""
        with LogContext.bind(**scope.log_fields()):
            computation = self._coordinator.recompute_now(scope)
        return computation.result

    def get_latest_schedule(self, scope: ProjectScope) -> ScheduleResult | None:
        with session_scope(self._session_factory) as session:
            return ScheduleResultStore(session, self._clock).latest(scope.project_id)

    def wait_for_schedule(
        self,
        scope: ProjectScope,
        timeout: float | None = None,
    ) -> ScheduleResult | None:
        """
        Wait for background recomputes of ``scope`` to settle.

        Returns the stored schedule (``None`` if the wait timed out).

        Raises:
            RecomputeFailedError: the project is in FAILED.
        """
        if not self._coordinator.wait_idle(scope, timeout=timeout):
            return None
        status = self._coordinator.status(scope)
        if status.state == RecomputeState.FAILED:
            raise RecomputeFailedError(str(scope.project_id), status.failure_reason or "")
        return self.get_latest_schedule(scope)

    def recompute_status(self, scope: ProjectScope) -> RecomputeStatus:
        return self._coordinator.status(scope)

    # =========================================================================
    # Triggers
    # =========================================================================

    def on_task_edited(self, scope: ProjectScope, task_id: str | None = None) -> RecomputeState:
        return self._coordinator.trigger(scope, reason=f"task_edited:{task_id or '*'}")

    def on_dependency_changed(self, scope: ProjectScope) -> RecomputeState:
        return self._coordinator.trigger(scope, reason="dependency_changed")

    def on_baseline_activated(self, scope: ProjectScope) -> RecomputeState:
        return self._coordinator.trigger(scope, reason="baseline_activated")

    # =========================================================================
    # Baselines
    # =========================================================================

    def create_baseline(self, scope: ProjectScope, name: str, actor_id: UUID) -> Baseline:
        """Capture a fresh CPM run of ``scope`` as a locked, inactive baseline."""

        def create() -> Baseline:
            computation = self._compute_fresh(scope)
            with session_scope(self._session_factory) as session:
                return BaselineService(
                    session,
                    self._clock,
                    negative_float_policy=self._config.negative_float_policy,
                ).create(computation.result, name, actor_id)

        with LogContext.bind(**scope.log_fields(), actor_id=actor_id):
            return self._coordinator.run_exclusive(scope, create)

    def activate_baseline(self, baseline_id: UUID, actor_id: UUID) -> None:
        """Make ``baseline_id`` the only active baseline of its project."""
        scope = self.get_baseline(baseline_id).scope

        def activate() -> None:
            with session_scope(self._session_factory) as session:
                BaselineService(session, self._clock).activate(baseline_id, actor_id)

        with LogContext.bind(**scope.log_fields(), baseline_id=baseline_id, actor_id=actor_id):
            self._coordinator.run_exclusive(scope, activate)
        self.on_baseline_activated(scope)

    def get_baseline(self, baseline_id: UUID) -> Baseline:
        with session_scope(self._session_factory) as session:
            return BaselineService(session, self._clock).get(baseline_id)

    def get_active_baseline(self, scope: ProjectScope) -> Baseline | None:
        with session_scope(self._session_factory) as session:
            return BaselineService(session, self._clock).get_active(scope.project_id)

    def list_baselines(self, scope: ProjectScope) -> Sequence[Baseline]:
        with session_scope(self._session_factory) as session:
            return BaselineService(session, self._clock).list_for_project(scope)

    def compare_baseline(self, baseline_id: UUID) -> BaselineComparison:
        """Variance of a fresh schedule of the baseline's project against it."""
        baseline = self.get_baseline(baseline_id)
        computation = self._coordinator.run_exclusive(
            baseline.scope, lambda: self._compute_fresh(baseline.scope)
        )
        return compare_to_baseline(baseline=baseline, schedule=computation.result)

    def purge_baseline(self, baseline_id: UUID, actor_id: UUID) -> int:
        """Administratively delete an inactive baseline; returns items removed."""
        scope = self.get_baseline(baseline_id).scope

        def purge() -> int:
            with session_scope(self._session_factory) as session:
                return BaselineService(session, self._clock).purge(baseline_id, actor_id)

        with LogContext.bind(**scope.log_fields(), baseline_id=baseline_id, actor_id=actor_id):
            return self._coordinator.run_exclusive(scope, purge)

    # =========================================================================
    # Earned value
    # =========================================================================

    def compute_earned_value(
        self,
        scope: ProjectScope,
        as_of_date: date,
    ) -> EarnedValueSnapshot | None:
        """Compute and store the EV snapshot of ``scope`` for ``as_of_date``."""

        def compute() -> EarnedValueSnapshot | None:
            snapshot = self._load_snapshot(scope)
            with session_scope(self._session_factory) as session:
                return self._store_earned_value(session, snapshot, as_of_date)

        with LogContext.bind(**scope.log_fields()):
            return self._coordinator.run_exclusive(scope, compute)

    def get_earned_value_history(self, scope: ProjectScope) -> Sequence[EarnedValueSnapshot]:
        with session_scope(self._session_factory) as session:
            return EarnedValueService(session, self._clock).history(scope.project_id)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def shutdown(self, wait: bool = True) -> None:
        self._coordinator.shutdown(wait=wait)

    # =========================================================================
    # Internal
    # =========================================================================

    def _read_snapshot(self, scope: ProjectScope) -> ProjectSnapshot:
        snapshot = self._source.load_snapshot(scope)
        if snapshot.scope != scope:
            raise ScopeViolationError("<snapshot>", str(scope), str(snapshot.scope))
        return snapshot

    def _load_snapshot(self, scope: ProjectScope) -> ProjectSnapshot:
        return call_with_transient_retry(
            lambda: self._read_snapshot(scope),
            self._config.storage_read_retries,
            operation="load_snapshot",
            scope=scope,
        )

    def _compute_fresh(self, scope: ProjectScope) -> ScheduleComputation:
        return call_with_transient_retry(
            lambda: self._compute(scope, None),
            self._config.storage_read_retries,
            operation="recompute",
            scope=scope,
        )

    def _compute(
        self,
        scope: ProjectScope,
        checkpoint: Callable[[], None] | None,
    ) -> ScheduleComputation:
        snapshot = self._read_snapshot(scope)
        graph = build_project_graph(
            snapshot,
            max_lag_minutes=self._config.max_lag_minutes,
            max_tasks=self._config.max_tasks,
            max_edges=self._config.max_edges,
        )
        result = compute_schedule(
            graph=graph,
            checkpoint=checkpoint,
            checkpoint_interval=self._config.cancel_check_interval,
        )
        if result.warnings:
            logger.info(
                "schedule_warnings",
                extra={
                    **scope.log_fields(),
                    "warning_count": len(result.warnings),
                    "negative_float_task_ids": list(result.negative_float_task_ids),
                    "constraint_violations": [w.task_id for w in result.constraint_violations],
                },
            )
        return ScheduleComputation(snapshot, result)

    def _publish(self, scope: ProjectScope, computation: ScheduleComputation) -> None:
        with session_scope(self._session_factory) as session:
            ScheduleResultStore(session, self._clock).save(computation.result)
            self._store_earned_value(session, computation.snapshot, self._clock.today())
        if self._sink is not None:
            self._sink.publish(computation.result)

    def _store_earned_value(
        self,
        session: Session,
        snapshot: ProjectSnapshot,
        as_of_date: date,
    ) -> EarnedValueSnapshot | None:
        scope = snapshot.scope
        active = BaselineService(session, self._clock).get_active(scope.project_id)
        if active is None:
            logger.debug(
                "earned_value_skipped_no_active_baseline",
                extra={**scope.log_fields(), "as_of_date": as_of_date},
            )
            return None
        metrics = calculate_metrics(
            tasks=snapshot.tasks,
            baseline_items=active.items,
            as_of_date=as_of_date,
            quantum=self._config.money_quantum,
        )
        return EarnedValueService(session, self._clock).store(
            scope, metrics, baseline_id=active.baseline_id
        )
