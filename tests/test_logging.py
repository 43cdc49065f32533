"""
Tests for schedule_kernel.logging_config.

Covers:
- JSON envelope, extras and serialization of domain values
- Kernel exception codes and structured attributes in error records
- LogContext set / bind / clear semantics, including worker threads
- configure_logging idempotence and the logger namespace
"""

import json
import logging
import threading
from datetime import date, datetime
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from schedule_kernel.domain.schedule import WarningKind
from schedule_kernel.exceptions import CycleDetectedError, NoFeasibleScheduleError
from schedule_kernel.logging_config import (
    LogContext,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture
def stream():
    """Fresh logging setup writing to a StringIO; restores the test setup after."""
    reset_logging()
    LogContext.clear()
    buffer = StringIO()
    configure_logging(stream=buffer)
    yield buffer
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def records(buffer: StringIO) -> list[dict]:
    return [json.loads(line) for line in buffer.getvalue().splitlines() if line]


class TestEnvelope:

    def test_one_json_object_per_record(self, stream):
        log = get_logger("services.schedule")
        log.info("recompute_queued")
        log.warning("schedule_warnings", extra={"warning_count": 2})
        log.debug("recompute_idle")

        out = records(stream)

        # default level is INFO
        assert [r["message"] for r in out] == ["recompute_queued", "schedule_warnings"]
        assert out[1]["level"] == "WARNING"
        assert out[1]["logger"] == "schedule_kernel.services.schedule"
        assert out[1]["warning_count"] == 2
        assert datetime.fromisoformat(out[0]["ts"]).tzinfo is not None

    def test_domain_values_serialized(self, stream):
        baseline_id = uuid4()
        get_logger("test").info(
            "earned_value_snapshot_stored",
            extra={
                "baseline_id": baseline_id,
                "as_of_date": date(2026, 3, 2),
                "pv": Decimal("312.50"),
                "task_ids": ("A", "B"),
                "kind": WarningKind.NEGATIVE_FLOAT,
                "late": frozenset({"C", "B"}),
            },
        )

        record = records(stream)[0]

        assert record["baseline_id"] == str(baseline_id)
        assert record["as_of_date"] == "2026-03-02"
        assert record["pv"] == "312.50"
        assert record["task_ids"] == ["A", "B"]
        assert record["kind"] == WarningKind.NEGATIVE_FLOAT.value
        assert record["late"] == ["B", "C"]

    def test_extras_cannot_shadow_envelope(self, stream):
        get_logger("test").info("real_message", extra={"level": "spoofed"})

        assert records(stream)[0]["level"] == "INFO"


class TestExceptionFields:

    def test_cycle_error_attributes(self, stream):
        try:
            raise CycleDetectedError(["A", "B", "C"])
        except CycleDetectedError:
            get_logger("test").exception("recompute_failed")

        record = records(stream)[0]

        assert record["exc_type"] == "CycleDetectedError"
        assert record["exc_code"] == "CYCLE_DETECTED"
        assert record["exc_cycle"] == ["A", "B", "C"]
        assert "Traceback" in record["traceback"]

    def test_feasibility_error_attributes(self, stream):
        try:
            raise NoFeasibleScheduleError(str(uuid4()), ("B", "A"))
        except NoFeasibleScheduleError as exc:
            get_logger("test").error("baseline_rejected", exc_info=True)
            code = exc.code

        assert records(stream)[0]["exc_code"] == code

    def test_plain_exception_has_no_code(self, stream):
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = records(stream)[0]

        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "exc_code" not in record


class TestLogContext:

    def test_fields_stamped_on_records(self, stream):
        project_id = uuid4()
        with LogContext.bind(project_id=project_id, correlation_id="req-7"):
            get_logger("test").info("baseline_created")
        get_logger("test").info("outside")

        inside, outside = records(stream)

        assert inside["project_id"] == str(project_id)
        assert inside["correlation_id"] == "req-7"
        assert "project_id" not in outside

    def test_bind_nests_and_restores(self):
        LogContext.set(project_id="outer")
        with LogContext.bind(project_id="inner", baseline_id="b1"):
            assert LogContext.get_all() == {"project_id": "inner", "baseline_id": "b1"}
        assert LogContext.get_all() == {"project_id": "outer"}

    def test_bind_ignores_none_and_unknown_fields(self):
        with LogContext.bind(project_id="p", actor_id=None, not_a_field="x"):
            assert LogContext.get_all() == {"project_id": "p"}

    def test_clear(self):
        LogContext.set(correlation_id="x", trace_id="t")
        LogContext.clear()

        assert LogContext.get_all() == {}

    def test_all_fields_supported(self):
        LogContext.set(**{name: name[0] for name in LogContext.FIELDS})

        assert set(LogContext.get_all()) == set(LogContext.FIELDS)
        assert len(LogContext.FIELDS) == 7

    def test_worker_binding_does_not_leak_to_caller(self):
        seen = {}
        LogContext.set(project_id="caller")

        def worker():
            with LogContext.bind(project_id="worker"):
                seen["inside"] = LogContext.get_all()

        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()

        assert seen["inside"]["project_id"] == "worker"
        assert LogContext.get_all() == {"project_id": "caller"}


class TestConfigureLogging:

    def test_idempotent(self, stream):
        configure_logging(stream=StringIO())

        assert len(logging.getLogger("schedule_kernel").handlers) == 1

    def test_namespace(self):
        assert get_logger("services.baseline").name == "schedule_kernel.services.baseline"

    def test_level_applies_to_children(self):
        reset_logging()
        buffer = StringIO()
        try:
            configure_logging(stream=buffer, level="DEBUG")
            get_logger("engines.cpm").debug("cpm_pass_complete")
        finally:
            reset_logging()
            configure_logging(level=logging.DEBUG)

        assert records(buffer)[0]["logger"] == "schedule_kernel.engines.cpm"
