"""
RecomputeCoordinator -- per-project serialization of schedule recomputes.

Contract:
    Accepts recompute triggers for any number of projects, runs at most one
    computation per project at a time on a thread pool, coalesces bursts of
    triggers, and publishes only results that were not superseded while
    they were being computed.

Architecture: schedule_services.  Generic over the work it runs: a
    ``runner(scope, checkpoint) -> result`` and a
    ``publisher(scope, result)``; ``ScheduleService`` supplies both.

State machine (per project)::

    IDLE --trigger--> QUEUED --worker picks up--> COMPUTING --done--> IDLE
                        ^                            |  |
                        |       trigger: pending,    |  +--error--> FAILED(reason)
                        |       generation += 1      |
                        +----------------------------+ (rerun once if pending)

    - trigger while QUEUED     -> no-op (the queued run will see the edit)
    - trigger while COMPUTING  -> the in-flight run is superseded; exactly
                                  one rerun follows, however many triggers
    - trigger while FAILED     -> re-queued; FAILED is never retried on its own

Invariants enforced:
    - At most one in-flight computation per project (per-project lock shared
      with ``recompute_now`` and ``run_exclusive``).
    - A result computed under an older generation is discarded, never
      published.  The generation check and the publish run under the
      slot's ``publish_lock``, which ``trigger`` also takes, so a trigger
      either supersedes the result before the check or waits for the
      publish to finish and schedules a rerun.  The runner polls
      ``checkpoint`` and aborts early with ``RecomputeSupersededError``.
    - ``TransientStorageError`` from the runner is retried
      ``storage_read_retries`` times, then escalates to FAILED.
    - All state lives on the coordinator instance; no module globals.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

from schedule_kernel.domain.types import ProjectScope
from schedule_kernel.exceptions import (
    RecomputeSupersededError,
    StructuralError,
    TransientStorageError,
)
from schedule_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.recompute")

R = TypeVar("R")
T = TypeVar("T")


class RecomputeState(str, Enum):
    """Lifecycle of a project's recompute slot."""

    IDLE = "idle"
    QUEUED = "queued"
    COMPUTING = "computing"
    FAILED = "failed"


@dataclass(frozen=True)
class RecomputeStatus:
    """Point-in-time view of one project's recompute slot."""

    scope: ProjectScope
    state: RecomputeState
    generation: int
    pending: bool
    failure_reason: str | None = None
    runs_started: int = 0
    runs_published: int = 0
    runs_discarded: int = 0


@dataclass
class _ProjectSlot:
    scope: ProjectScope
    state: RecomputeState = RecomputeState.IDLE
    generation: int = 0
    pending: bool = False
    failure_reason: str | None = None
    runs_started: int = 0
    runs_published: int = 0
    runs_discarded: int = 0
    lock: threading.RLock = field(default_factory=threading.RLock)
    # held across the stale check and the publish; taken before _cond
    publish_lock: threading.RLock = field(default_factory=threading.RLock)

    def status(self) -> RecomputeStatus:
        return RecomputeStatus(
            scope=self.scope,
            state=self.state,
            generation=self.generation,
            pending=self.pending,
            failure_reason=self.failure_reason,
            runs_started=self.runs_started,
            runs_published=self.runs_published,
            runs_discarded=self.runs_discarded,
        )


def call_with_transient_retry(
    fn: Callable[[], T],
    retries: int,
    *,
    operation: str,
    scope: ProjectScope | None = None,
) -> T:
    """Call ``fn``; on ``TransientStorageError`` retry up to ``retries`` times."""
    attempt = 0
    while True:
        try:
            return fn()
        except TransientStorageError as exc:
            if attempt >= retries:
                raise
            attempt += 1
            logger.warning(
                "transient_storage_retry",
                extra={
                    **(scope.log_fields() if scope is not None else {}),
                    "operation": operation,
                    "attempt": attempt,
                    "max_retries": retries,
                    "reason": exc.reason,
                },
            )


class RecomputeCoordinator(Generic[R]):
    """Coalescing, per-project-serialized recompute scheduler.

    Contract:
        - ``trigger()`` is cheap and never blocks on a computation; at most
          it waits for an in-progress publish to commit.
        - ``recompute_now()`` runs synchronously in the caller's thread and
          raises whatever the runner raises.
        - ``run_exclusive()`` runs arbitrary work under the project's lock.
        - ``wait_idle()`` / ``status()`` for observation; ``shutdown()`` to stop.

    Non-goals:
        - Does NOT retry FAILED projects; the next trigger does.
        - NOT distributed; serialization is per process.
    """

    def __init__(
        self,
        runner: Callable[[ProjectScope, Callable[[], None]], R],
        publisher: Callable[[ProjectScope, R], None],
        *,
        executor: Executor | None = None,
        worker_count: int = 4,
        storage_read_retries: int = 1,
    ):
        self._runner = runner
        self._publisher = publisher
        self._retries = storage_read_retries
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=worker_count,
            thread_name_prefix="schedule-recompute",
        )
        self._cond = threading.Condition()
        self._slots: dict[ProjectScope, _ProjectSlot] = {}
        self._closed = False

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def trigger(self, scope: ProjectScope, reason: str = "edit") -> RecomputeState:
        """
        Request a recompute of ``scope``; returns the state after the trigger.

        May wait for a result that is already being published, never for a
        computation.
        """
        slot = self._slot_locked(scope)
        with slot.publish_lock, self._cond:
            if self._closed:
                raise RuntimeError("RecomputeCoordinator is shut down")

            if slot.state == RecomputeState.QUEUED:
                logger.debug(
                    "recompute_trigger_coalesced",
                    extra={**scope.log_fields(), "reason": reason, "state": slot.state.value},
                )
                return slot.state

            if slot.state == RecomputeState.COMPUTING:
                slot.generation += 1
                slot.pending = True
                logger.info(
                    "recompute_superseded",
                    extra={
                        **scope.log_fields(),
                        "reason": reason,
                        "generation": slot.generation,
                    },
                )
                return slot.state

            slot.state = RecomputeState.QUEUED
            slot.failure_reason = None
            slot.generation += 1
            self._executor.submit(self._work, slot)
            logger.info(
                "recompute_queued",
                extra={**scope.log_fields(), "reason": reason, "generation": slot.generation},
            )
            return slot.state

    def recompute_now(self, scope: ProjectScope) -> R:
        """
        Compute and publish ``scope`` synchronously, serialized with workers.

        Only touches the state machine when no background run is active:
        failure moves IDLE to FAILED, success clears FAILED back to IDLE.
        """
        slot = self._slot_locked(scope)
        with slot.lock:
            try:
                result = call_with_transient_retry(
                    lambda: self._runner(scope, _no_checkpoint),
                    self._retries,
                    operation="recompute",
                    scope=scope,
                )
                self._publisher(scope, result)
            except Exception as exc:
                with self._cond:
                    if slot.state in (RecomputeState.IDLE, RecomputeState.FAILED):
                        slot.state = RecomputeState.FAILED
                        slot.failure_reason = _describe(exc)
                    self._cond.notify_all()
                raise
            with self._cond:
                slot.runs_published += 1
                if slot.state == RecomputeState.FAILED:
                    slot.state = RecomputeState.IDLE
                    slot.failure_reason = None
                self._cond.notify_all()
        return result

    def run_exclusive(self, scope: ProjectScope, fn: Callable[[], T]) -> T:
        """Run ``fn`` while no recompute of ``scope`` is in flight."""
        slot = self._slot_locked(scope)
        with slot.lock:
            return fn()

    def status(self, scope: ProjectScope) -> RecomputeStatus:
        return self._slot_locked(scope).status()

    def state(self, scope: ProjectScope) -> RecomputeState:
        return self.status(scope).state

    def wait_idle(
        self,
        scope: ProjectScope | None = None,
        timeout: float | None = None,
    ) -> bool:
        """Block until ``scope`` (or every project) is IDLE or FAILED."""
        settled = (RecomputeState.IDLE, RecomputeState.FAILED)

        def done() -> bool:
            if scope is not None:
                slot = self._slots.get(scope)
                return slot is None or slot.state in settled
            return all(s.state in settled for s in self._slots.values())

        with self._cond:
            return self._cond.wait_for(done, timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        with self._cond:
            self._closed = True
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
        logger.info("recompute_coordinator_stopped", extra={"projects": len(self._slots)})

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _slot(self, scope: ProjectScope) -> _ProjectSlot:
        slot = self._slots.get(scope)
        if slot is None:
            slot = _ProjectSlot(scope)
            self._slots[scope] = slot
        return slot

    def _slot_locked(self, scope: ProjectScope) -> _ProjectSlot:
        with self._cond:
            return self._slot(scope)

    def _work(self, slot: _ProjectSlot) -> None:
        scope = slot.scope
        with LogContext.bind(**scope.log_fields()), slot.lock:
            while True:
                with self._cond:
                    slot.state = RecomputeState.COMPUTING
                    slot.pending = False
                    slot.runs_started += 1
                    generation = slot.generation

                try:
                    result = call_with_transient_retry(
                        lambda: self._runner(scope, self._checkpoint(slot, generation)),
                        self._retries,
                        operation="recompute",
                        scope=scope,
                    )
                    with slot.publish_lock:
                        with self._cond:
                            stale = slot.generation != generation
                        if not stale:
                            self._publisher(scope, result)
                except RecomputeSupersededError:
                    stale = True
                except Exception as exc:
                    with self._cond:
                        if slot.pending:
                            logger.warning(
                                "recompute_failed_rerunning",
                                extra={"generation": generation, "reason": _describe(exc)},
                            )
                            continue
                        slot.state = RecomputeState.FAILED
                        slot.failure_reason = _describe(exc)
                        self._cond.notify_all()
                    if isinstance(exc, StructuralError):
                        logger.warning(
                            "recompute_failed",
                            extra={"generation": generation, "reason": slot.failure_reason},
                        )
                    else:
                        logger.exception(
                            "recompute_failed",
                            extra={"generation": generation, "reason": slot.failure_reason},
                        )
                    return

                with self._cond:
                    if stale:
                        slot.runs_discarded += 1
                        logger.info(
                            "recompute_result_discarded",
                            extra={"generation": generation, "latest": slot.generation},
                        )
                    else:
                        slot.runs_published += 1
                    if slot.pending:
                        continue
                    slot.state = RecomputeState.IDLE
                    self._cond.notify_all()
                    logger.debug("recompute_idle", extra={"generation": generation})
                    return

    def _checkpoint(self, slot: _ProjectSlot, generation: int) -> Callable[[], None]:
        def checkpoint() -> None:
            with self._cond:
                current = slot.generation
            if current != generation:
                raise RecomputeSupersededError(str(slot.scope.project_id), generation)

        return checkpoint


def _no_checkpoint() -> None:
    return None


def _describe(exc: Exception) -> str:
    code = getattr(exc, "code", None)
    return f"{code}: {exc}" if code else f"{type(exc).__name__}: {exc}"
