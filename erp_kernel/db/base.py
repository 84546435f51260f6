"""
Module: erp_kernel.db.base
Responsibility: ORM foundation shared by every module table: the UUID
    column type, the ``Base`` with the project-wide annotation-to-column
    map, and ``TrackedBase`` carrying who/when audit columns.
Architecture position: Kernel > DB.  Imported by every ``orm.py`` and by
    the kernel's own tables; imports nothing from the rest of the project.

Invariants enforced:
    - Primary keys are uuid4 values, persisted as 36-character strings so
      SQLite and PostgreSQL share one schema.
    - ``Mapped[Decimal]`` becomes Numeric(38, 9): amounts and stock
      quantities are never floats in the database.
    - Every business row records its creator; updates record the updater.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Date, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """``uuid.UUID`` in Python, ``VARCHAR(36)`` in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    """Root of all mapped classes; every table gets a uuid4 ``id``."""

    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        date: Date,
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Business rows with audit columns.

    The timestamps are stamped by the database.  ``updated_at`` and
    ``updated_by_id`` may change even on append-only rows; the listeners in
    ``db/immutability.py`` ignore them.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False,
    )
    created_by_id: Mapped[UUID] = mapped_column(nullable=False)
    updated_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
