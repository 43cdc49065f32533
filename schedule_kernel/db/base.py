"""
Declarative base for the schedule tables.

Every table gets a uuid4 ``id`` stored as ``String(36)`` so one schema runs
on PostgreSQL (production) and SQLite (tests).  Money columns are
``Numeric(38, 9)``; minute offsets and counts are ``BigInteger``;
datetimes are timezone-aware where the backend supports it.

``TrackedBase`` adds who/when columns to the rows people create
(baselines, baseline items, EV snapshots).  The computed schedule rows,
rewritten by every recompute, derive from ``Base`` directly.

Constraint names follow ``NAMING_CONVENTION`` so migrations and the
immutability error messages see the same names on both backends.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, MetaData, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class UUIDString(TypeDecorator):
    """``uuid.UUID`` in Python, ``VARCHAR(36)`` in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Rows with an accountable author.

    ``created_by_id`` is mandatory.  ``updated_at`` / ``updated_by_id`` move
    on every UPDATE, including the ``is_active`` flip of a locked baseline,
    which is why the immutability listeners treat them as metadata.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )
    created_by_id: Mapped[UUID] = mapped_column(nullable=False)
    updated_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
