"""
Engine and session management for the schedule database.

One process-wide engine, created by ``init_engine_from_url``.  Recompute
workers, baseline writers and EV writers never share a session: each
opens its own from ``get_session_factory()`` inside ``session_scope``,
which commits on success and rolls back on any exception.  A baseline and
its items therefore land together or not at all.

Backends:
    - PostgreSQL (``postgresql+psycopg2://``) in production: QueuePool with
      pre-ping, READ COMMITTED.
    - SQLite for tests.  ``:memory:`` databases exist per connection, so
      the pool is a StaticPool holding one connection shared by every
      thread; callers must not use it from two threads at once.

``get_engine`` / ``get_session_factory`` raise ``RuntimeError`` until the
engine is initialized.
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from schedule_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _engine_options(url: URL, pool_size: int, max_overflow: int, pool_recycle: int) -> dict[str, Any]:
    if url.get_backend_name() == "sqlite":
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {
        "poolclass": QueuePool,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": pool_recycle,
        "isolation_level": "READ COMMITTED",
    }


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create (or replace) the process-wide engine and session factory.

    ``pool_size`` should cover the recompute worker count plus request
    threads; pool options are ignored for SQLite.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    if _engine is not None:
        _engine.dispose()
    _engine = create_engine(
        url, echo=echo, **_engine_options(url, pool_size, max_overflow, pool_recycle)
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={
            "dialect": url.get_backend_name(),
            "url": url.render_as_string(hide_password=True),
        },
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Database engine not initialized; call init_engine_from_url() first")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError("Database engine not initialized; call init_engine_from_url() first")
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope(factory: sessionmaker[Session] | None = None) -> Iterator[Session]:
    """
    One transaction: commit on normal exit, roll back and re-raise otherwise.

        with session_scope(factory) as session:
            BaselineService(session, clock).activate(baseline_id, actor_id)
    """
    session = factory() if factory is not None else get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.debug("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine | None = None) -> None:
    """Create all schedule tables and install the immutability listeners."""
    from schedule_kernel.db.base import Base
    from schedule_kernel.db.immutability import register_immutability_listeners
    import schedule_kernel.models  # noqa: F401

    Base.metadata.create_all(engine or get_engine())
    register_immutability_listeners()


def drop_tables(engine: Engine | None = None) -> None:
    from schedule_kernel.db.base import Base
    import schedule_kernel.models  # noqa: F401

    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory (tests)."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
