"""
Property-based tests for the CPM engine.

Random acyclic networks of as-soon-as-possible tasks with non-negative
lags.  For every generated network the computed schedule must satisfy
the precedence inequalities in both passes, float must be non-negative
without a deadline, and the result must not depend on input order.
"""

from datetime import timedelta

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from schedule_engines.cpm import compute_schedule
from schedule_engines.graph import build_project_graph
from schedule_kernel.domain.types import DependencyEdge, ProjectSnapshot, TaskSnapshot
from tests.fakes import ANCHOR, make_scope

SCOPE = make_scope()


@st.composite
def networks(draw):
    size = draw(st.integers(min_value=1, max_value=25))
    durations = draw(st.lists(st.integers(0, 600), min_size=size, max_size=size))
    ids = [f"T{i:02d}" for i in range(size)]

    edges = []
    for j in range(1, size):
        preds = draw(st.sets(st.integers(0, j - 1), max_size=3))
        for i in sorted(preds):
            lag = draw(st.integers(0, 120))
            edges.append(DependencyEdge(ids[i], ids[j], lag))

    tasks = tuple(
        TaskSnapshot(
            task_id=tid,
            scope=SCOPE,
            planned_start=ANCHOR,
            planned_end=ANCHOR + timedelta(minutes=d),
        )
        for tid, d in zip(ids, durations)
    )
    return ProjectSnapshot(
        scope=SCOPE, tasks=tasks, edges=tuple(edges), schedule_from=ANCHOR,
    )


_SETTINGS = settings(max_examples=150, deadline=None, suppress_health_check=[HealthCheck.too_slow])


class TestCpmProperties:

    @_SETTINGS
    @given(snapshot=networks())
    def test_precedence_holds_in_both_passes(self, snapshot):
        result = compute_schedule(graph=build_project_graph(snapshot))
        t = result.by_task_id()

        for edge in snapshot.edges:
            pred, succ = t[edge.predecessor_id], t[edge.successor_id]
            assert succ.early_start >= pred.early_finish + edge.lag_minutes
            assert pred.late_finish <= succ.late_start - edge.lag_minutes

    @_SETTINGS
    @given(snapshot=networks())
    def test_float_non_negative_and_critical_path_exists(self, snapshot):
        result = compute_schedule(graph=build_project_graph(snapshot))

        assert all(task.total_float_minutes >= 0 for task in result.tasks)
        assert all(0 <= task.free_float_minutes <= task.total_float_minutes for task in result.tasks)
        assert result.critical_path
        assert result.project_finish_minutes == max(task.early_finish for task in result.tasks)
        assert not result.warnings

    @_SETTINGS
    @given(snapshot=networks())
    def test_early_dates_are_tight(self, snapshot):
        result = compute_schedule(graph=build_project_graph(snapshot))
        t = result.by_task_id()
        driving: dict[str, int] = {tid: 0 for tid in t}
        for edge in snapshot.edges:
            pred = t[edge.predecessor_id]
            driving[edge.successor_id] = max(
                driving[edge.successor_id], pred.early_finish + edge.lag_minutes
            )

        for tid, task in t.items():
            assert task.early_start == driving[tid]
            assert task.early_finish == task.early_start + task.duration_minutes

    @_SETTINGS
    @given(snapshot=networks(), data=st.data())
    def test_input_order_irrelevant(self, snapshot, data):
        shuffled = ProjectSnapshot(
            scope=snapshot.scope,
            tasks=tuple(data.draw(st.permutations(snapshot.tasks))),
            edges=tuple(data.draw(st.permutations(snapshot.edges))),
            schedule_from=snapshot.schedule_from,
        )

        first = compute_schedule(graph=build_project_graph(snapshot))
        second = compute_schedule(graph=build_project_graph(shuffled))

        assert first == second
