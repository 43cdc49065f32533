"""Tests for the engine invocation tracer."""

from datetime import date
from decimal import Decimal

import pytest

from schedule_engines.cpm import compute_schedule
from schedule_engines.graph import build_project_graph
from schedule_engines.tracer import _canonicalize, compute_input_fingerprint, traced_engine
from tests.fakes import SnapshotBuilder


class _Fingerprinted:
    fingerprint = "abc123"


class TestInputFingerprint:

    def test_deterministic(self):
        kwargs = {"a": 1, "b": {"y": 2, "x": [1, 2]}}

        assert compute_input_fingerprint(("a", "b"), kwargs) == compute_input_fingerprint(
            ("a", "b"), dict(reversed(list(kwargs.items())))
        )

    def test_length_is_sixteen_hex_chars(self):
        fp = compute_input_fingerprint(("a",), {"a": 1})

        assert len(fp) == 16
        int(fp, 16)

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("a",), {}) == compute_input_fingerprint(
            ("a",), {"a": None}
        )

    def test_fingerprint_attribute_used(self):
        assert _canonicalize(_Fingerprinted()) == "abc123"

    def test_dict_keys_sorted(self):
        assert _canonicalize({"b": 1, "a": 2}) == "{a:2,b:1}"

    def test_dates_and_decimals_canonical(self):
        assert _canonicalize(date(2026, 3, 2)) == "2026-03-02"
        assert _canonicalize(Decimal("1.50")) == _canonicalize(Decimal("1.5"))


class TestTracedEngine:

    def test_emits_trace_record(self, captured_logs):
        @traced_engine("demo", "2.1", fingerprint_fields=("x",))
        def demo(*, x):
            return x * 2

        assert demo(x=21) == 42

        traces = [r for r in captured_logs() if r["message"] == "SCHEDULE_ENGINE_TRACE"]
        assert len(traces) == 1
        trace = traces[0]
        assert trace["engine_name"] == "demo"
        assert trace["engine_version"] == "2.1"
        assert trace["input_fingerprint"] == compute_input_fingerprint(("x",), {"x": 21})
        assert trace["logger"] == "schedule_kernel.engines.tracer"
        assert trace["duration_ms"] >= 0

    def test_cpm_trace_fingerprint_follows_graph(self, captured_logs):
        graph = build_project_graph(SnapshotBuilder().task("A", 60).build())

        compute_schedule(graph=graph)

        cpm = [r for r in captured_logs() if r.get("engine_name") == "cpm"]
        assert cpm[0]["input_fingerprint"] == compute_input_fingerprint(
            ("graph",), {"graph": graph}
        )
        assert cpm[0]["task_count"] == 1
        assert cpm[0]["critical_path_length"] == 1
        assert cpm[0]["warning_count"] == 0

    def test_exception_propagates_without_trace(self, captured_logs):
        @traced_engine("failing", "1.0")
        def failing():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            failing()

        assert not [r for r in captured_logs() if r.get("engine_name") == "failing"]
