"""Database layer - engine, base classes, and immutability listeners."""

from schedule_kernel.db.base import NAMING_CONVENTION, Base, TrackedBase, UUIDString
from schedule_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "Base",
    "TrackedBase",
    "NAMING_CONVENTION",
    "UUIDString",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]
