"""Tests for ScheduleResultStore."""

from sqlalchemy import func, select

from schedule_engines.cpm import compute_schedule
from schedule_engines.graph import build_project_graph
from schedule_kernel.db.engine import session_scope
from schedule_kernel.models.schedule_result import ScheduleRunModel, TaskScheduleRecordModel
from schedule_kernel.services.schedule_result_store import ScheduleResultStore
from tests.fakes import SnapshotBuilder


def _schedule(scope, b_minutes: int = 120, *, with_missing: bool = False):
    builder = SnapshotBuilder(scope=scope).task("A", 60).task("B", b_minutes).chain("A", "B")
    if with_missing:
        builder.task("C", None)
    return compute_schedule(graph=build_project_graph(builder.build()))


class TestScheduleResultStore:

    def test_round_trip_equals_computed(self, session_factory, scope, deterministic_clock):
        result = _schedule(scope, with_missing=True)

        with session_scope(session_factory) as session:
            ScheduleResultStore(session, deterministic_clock).save(result)

        with session_scope(session_factory) as session:
            loaded = ScheduleResultStore(session, deterministic_clock).latest(scope.project_id)

        assert loaded == result
        assert loaded.warnings == result.warnings

    def test_save_replaces_previous_run(self, session_factory, scope, deterministic_clock):
        with session_scope(session_factory) as session:
            ScheduleResultStore(session, deterministic_clock).save(_schedule(scope))
        newer = _schedule(scope, 240)

        with session_scope(session_factory) as session:
            ScheduleResultStore(session, deterministic_clock).save(newer)

        with session_scope(session_factory) as session:
            runs = session.execute(select(func.count()).select_from(ScheduleRunModel)).scalar_one()
            tasks = session.execute(
                select(func.count()).select_from(TaskScheduleRecordModel)
            ).scalar_one()
            latest = ScheduleResultStore(session, deterministic_clock).latest(scope.project_id)

        assert (runs, tasks) == (1, 2)
        assert latest.project_finish_minutes == 300
        assert latest.input_fingerprint == newer.input_fingerprint

    def test_latest_for_unknown_project(self, session, scope, deterministic_clock):
        assert ScheduleResultStore(session, deterministic_clock).latest(scope.project_id) is None
