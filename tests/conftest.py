"""
Pytest fixtures for the schedule engine test suite.

Provides:
- Structured-logging setup and a ``captured_logs`` fixture
- A fresh database per test (in-memory SQLite by default)
- A deterministic clock and project scope helpers

Environment Variables:
- DATABASE_URL: override the database (e.g. a PostgreSQL URL with the
  psycopg2 driver).  Defaults to ``sqlite:///:memory:``.

All datetimes in tests are naive (UTC by convention) because SQLite does
not round-trip timezone offsets.
"""

import json
import logging
import os
from datetime import datetime
from io import StringIO
from uuid import uuid4

import pytest

from schedule_config import EngineConfig
from schedule_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from schedule_kernel.domain.clock import DeterministicClock
from schedule_kernel.domain.types import ProjectScope
from schedule_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

TEST_ACTOR_ID = uuid4()
PROJECT_START = datetime(2026, 3, 2, 9, 0)

DEFAULT_DATABASE_URL = "sqlite:///:memory:"


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "postgres: mark test as requiring PostgreSQL")
    config.addinivalue_line("markers", "slow: mark test as slow (large graphs, threads)")


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture schedule_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            service.recompute(scope)
            logs = captured_logs()
            assert any(r["message"] == "schedule_result_stored" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("schedule_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """A fresh engine and schema per test."""
    eng = init_engine_from_url(get_database_url())
    create_tables(eng)
    yield eng
    drop_tables(eng)
    reset_engine()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory):
    """A session whose uncommitted work is rolled back after the test."""
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(PROJECT_START)


@pytest.fixture
def test_actor_id():
    return TEST_ACTOR_ID


@pytest.fixture
def scope():
    return ProjectScope(uuid4(), uuid4(), uuid4())


@pytest.fixture
def engine_config():
    return EngineConfig(worker_count=2)
