"""
Tests for BaselineService.

Covers:
- Capture of a computed schedule as a locked baseline with items
- All-or-nothing creation
- Negative-float policy
- Single active baseline per project
- Immutability of locked baselines and their items
- Administrative purge
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from schedule_engines.cpm import compute_schedule
from schedule_engines.graph import build_project_graph
from schedule_kernel.db.engine import session_scope
from schedule_kernel.domain.earned_value import EarnedValueMetrics
from schedule_kernel.exceptions import (
    ActiveBaselinePurgeError,
    BaselineEmptyError,
    BaselineNotFoundError,
    ImmutabilityViolationError,
    NoFeasibleScheduleError,
)
from schedule_kernel.models.baseline import BaselineItemModel, ScheduleBaselineModel
from schedule_kernel.services.baseline_service import NEGATIVE_FLOAT_WARN, BaselineService
from schedule_kernel.services.earned_value_service import EarnedValueService
from tests.fakes import ANCHOR, SnapshotBuilder, make_scope


def _schedule(scope, *, deadline=None):
    builder = SnapshotBuilder(scope=scope, deadline=deadline)
    builder.task("A", 60).task("B", 120).task("C", 30).chain("A", "B", "C")
    return compute_schedule(graph=build_project_graph(builder.build()))


def _row_counts(session_factory) -> tuple[int, int]:
    with session_scope(session_factory) as s:
        baselines = s.execute(select(func.count()).select_from(ScheduleBaselineModel)).scalar_one()
        items = s.execute(select(func.count()).select_from(BaselineItemModel)).scalar_one()
    return baselines, items


class TestCreateBaseline:

    def test_captures_schedule(self, session, scope, deterministic_clock, test_actor_id):
        service = BaselineService(session, deterministic_clock)

        baseline = service.create(_schedule(scope), "Initial plan", test_actor_id)

        assert baseline.locked
        assert not baseline.is_active
        assert baseline.item_count == 3
        assert baseline.scope == scope
        assert baseline.created_by == test_actor_id
        assert baseline.captured_at == deterministic_clock.now()
        assert baseline.project_finish == ANCHOR + timedelta(minutes=210)
        assert [i.task_id for i in baseline.items] == ["A", "B", "C"]

    def test_items_hold_cpm_figures(self, session, scope, deterministic_clock, test_actor_id):
        service = BaselineService(session, deterministic_clock)

        baseline = service.create(_schedule(scope), "Initial plan", test_actor_id)
        b = {i.task_id: i for i in baseline.items}["B"]

        assert b.planned_start == ANCHOR + timedelta(minutes=60)
        assert b.planned_end == ANCHOR + timedelta(minutes=180)
        assert b.duration_minutes == 120
        assert b.critical_path
        assert b.total_float_minutes == 0

    def test_empty_project_rejected(self, session, deterministic_clock, test_actor_id):
        empty = compute_schedule(graph=build_project_graph(SnapshotBuilder().build()))

        with pytest.raises(BaselineEmptyError):
            BaselineService(session, deterministic_clock).create(empty, "x", test_actor_id)

    def test_creation_is_all_or_nothing(
        self, session_factory, scope, deterministic_clock, test_actor_id, monkeypatch,
    ):
        original = BaselineService._add_item
        added = []

        def failing_add_item(self, model, item, actor_id):
            added.append(item.task_id)
            if len(added) == 3:
                raise RuntimeError("storage unavailable")
            original(self, model, item, actor_id)

        monkeypatch.setattr(BaselineService, "_add_item", failing_add_item)

        with pytest.raises(RuntimeError):
            with session_scope(session_factory) as session:
                BaselineService(session, deterministic_clock).create(
                    _schedule(scope), "Initial plan", test_actor_id,
                )

        assert added == ["A", "B", "C"]
        assert _row_counts(session_factory) == (0, 0)


class TestNegativeFloatPolicy:

    def test_reject_by_default(self, session, scope, deterministic_clock, test_actor_id):
        schedule = _schedule(scope, deadline=ANCHOR + timedelta(minutes=120))

        with pytest.raises(NoFeasibleScheduleError) as exc_info:
            BaselineService(session, deterministic_clock).create(schedule, "x", test_actor_id)

        assert exc_info.value.negative_float_task_ids == ["A", "B", "C"]

    def test_warn_policy_captures_and_logs(
        self, session, scope, deterministic_clock, test_actor_id, captured_logs,
    ):
        schedule = _schedule(scope, deadline=ANCHOR + timedelta(minutes=120))
        service = BaselineService(
            session, deterministic_clock, negative_float_policy=NEGATIVE_FLOAT_WARN,
        )

        baseline = service.create(schedule, "x", test_actor_id)

        assert baseline.item_count == 3
        assert any(
            r["message"] == "baseline_captured_with_negative_float" for r in captured_logs()
        )


class TestActivation:

    def test_activate_sets_single_active(self, session, scope, deterministic_clock, test_actor_id):
        service = BaselineService(session, deterministic_clock)
        first = service.create(_schedule(scope), "v1", test_actor_id)
        second = service.create(_schedule(scope), "v2", test_actor_id)

        service.activate(first.baseline_id, test_actor_id)
        service.activate(second.baseline_id, test_actor_id)

        assert service.get_active(scope.project_id).baseline_id == second.baseline_id
        assert not service.get(first.baseline_id).is_active
        active_rows = session.execute(
            select(func.count())
            .select_from(ScheduleBaselineModel)
            .where(ScheduleBaselineModel.is_active.is_(True))
        ).scalar_one()
        assert active_rows == 1

    def test_reactivating_active_is_noop(self, session, scope, deterministic_clock, test_actor_id):
        service = BaselineService(session, deterministic_clock)
        baseline = service.create(_schedule(scope), "v1", test_actor_id)
        service.activate(baseline.baseline_id, test_actor_id)

        again = service.activate(baseline.baseline_id, test_actor_id)

        assert again.is_active

    def test_no_active_baseline(self, session, scope, deterministic_clock):
        assert BaselineService(session, deterministic_clock).get_active(scope.project_id) is None

    def test_projects_are_independent(self, session, scope, deterministic_clock, test_actor_id):
        other = make_scope()
        service = BaselineService(session, deterministic_clock)
        mine = service.create(_schedule(scope), "mine", test_actor_id)
        theirs = service.create(_schedule(other), "theirs", test_actor_id)

        service.activate(mine.baseline_id, test_actor_id)
        service.activate(theirs.baseline_id, test_actor_id)

        assert service.get_active(scope.project_id).baseline_id == mine.baseline_id
        assert service.get_active(other.project_id).baseline_id == theirs.baseline_id

    def test_unknown_baseline(self, session, deterministic_clock, test_actor_id):
        with pytest.raises(BaselineNotFoundError):
            BaselineService(session, deterministic_clock).activate(uuid4(), test_actor_id)


class TestListing:

    def test_list_headers_oldest_first(self, session, scope, deterministic_clock, test_actor_id):
        service = BaselineService(session, deterministic_clock)
        service.create(_schedule(scope), "first", test_actor_id)
        deterministic_clock.advance(3600)
        service.create(_schedule(scope), "second", test_actor_id)

        listed = service.list_for_project(scope)

        assert [b.name for b in listed] == ["first", "second"]
        assert all(b.items == () for b in listed)
        assert all(b.item_count == 3 for b in listed)


class TestImmutability:
    """Locked baselines and items reject ORM updates and deletes."""

    def _locked(self, session, scope, clock, actor_id) -> ScheduleBaselineModel:
        baseline = BaselineService(session, clock).create(_schedule(scope), "v1", actor_id)
        return session.get(ScheduleBaselineModel, baseline.baseline_id)

    def test_rename_rejected(self, session, scope, deterministic_clock, test_actor_id):
        model = self._locked(session, scope, deterministic_clock, test_actor_id)

        model.name = "renamed"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.entity_type == "ScheduleBaseline"

    def test_unlock_rejected(self, session, scope, deterministic_clock, test_actor_id):
        model = self._locked(session, scope, deterministic_clock, test_actor_id)

        model.locked = False
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_item_update_rejected(self, session, scope, deterministic_clock, test_actor_id):
        model = self._locked(session, scope, deterministic_clock, test_actor_id)

        model.items[0].duration_minutes = 999
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.entity_type == "BaselineItem"

    def test_item_removal_rejected(self, session, scope, deterministic_clock, test_actor_id):
        model = self._locked(session, scope, deterministic_clock, test_actor_id)

        model.items.pop()
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_orm_delete_rejected(self, session, scope, deterministic_clock, test_actor_id):
        model = self._locked(session, scope, deterministic_clock, test_actor_id)

        session.delete(model)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestPurge:

    def test_purge_removes_baseline_and_items(
        self, session_factory, scope, deterministic_clock, test_actor_id,
    ):
        with session_scope(session_factory) as session:
            baseline = BaselineService(session, deterministic_clock).create(
                _schedule(scope), "old", test_actor_id,
            )

        with session_scope(session_factory) as session:
            removed = BaselineService(session, deterministic_clock).purge(
                baseline.baseline_id, test_actor_id,
            )

        assert removed == 3
        assert _row_counts(session_factory) == (0, 0)

    def test_active_baseline_cannot_be_purged(
        self, session, scope, deterministic_clock, test_actor_id,
    ):
        service = BaselineService(session, deterministic_clock)
        baseline = service.create(_schedule(scope), "v1", test_actor_id)
        service.activate(baseline.baseline_id, test_actor_id)

        with pytest.raises(ActiveBaselinePurgeError):
            service.purge(baseline.baseline_id, test_actor_id)

    def test_purge_detaches_earned_value_snapshots(
        self, session_factory, scope, deterministic_clock, test_actor_id,
    ):
        with session_scope(session_factory) as session:
            baseline = BaselineService(session, deterministic_clock).create(
                _schedule(scope), "old", test_actor_id,
            )
            zero = Decimal("0.00")
            EarnedValueService(session, deterministic_clock).store(
                scope,
                EarnedValueMetrics(date(2026, 3, 2), zero, zero, zero, zero, zero, zero, zero, zero, zero),
                baseline_id=baseline.baseline_id,
            )

        with session_scope(session_factory) as session:
            BaselineService(session, deterministic_clock).purge(baseline.baseline_id, test_actor_id)

        with session_scope(session_factory) as session:
            snapshot = EarnedValueService(session, deterministic_clock).get(
                scope.project_id, date(2026, 3, 2),
            )

        assert snapshot is not None
        assert snapshot.baseline_id is None
