"""
Module: fuel_kernel.db.base
Responsibility: Declarative base and portable column types for all SQLAlchemy
    ORM models.  Provides the UUID primary key convention, exact-Decimal litre
    columns, and always-UTC timestamps.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - UUID primary keys: every model inherits a uuid4-generated primary key.
    - Exact quantities: Decimal maps to Liters, stored as NUMERIC(18, 3) on
      PostgreSQL and as a canonical string on SQLite so no value ever passes
      through float.  NEVER use float for fuel quantities.
    - Timestamps are timezone-aware UTC on the way in and on the way out.

Failure modes:
    - TypeError if a float is bound to a Liters column.
    - IntegrityError on duplicate primary key (protected by PK constraint).
"""

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

QUANTITY_PLACES = 3
_QUANTUM = Decimal(1).scaleb(-QUANTITY_PLACES)


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return value if isinstance(value, PyUUID) else PyUUID(value)
        return None


class Liters(TypeDecorator):
    """
    Fuel quantity in litres with fixed millilitre precision.

    Contract:
        Values are quantized to three decimal places (ROUND_HALF_UP) when
        bound.  PostgreSQL stores NUMERIC(18, 3); SQLite, which has no exact
        decimal storage, stores the canonical string form.

    Guarantees:
        - Round-trips Decimal exactly on every supported backend.
        - Rejects float input outright.
    """

    impl = Numeric(18, QUANTITY_PLACES)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(40))
        return dialect.type_descriptor(Numeric(18, QUANTITY_PLACES, asdecimal=True))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, float):
            raise TypeError("Liters columns require Decimal, not float")
        quantized = Decimal(value).quantize(_QUANTUM, rounding=ROUND_HALF_UP)
        if dialect.name == "sqlite":
            return str(quantized)
        return quantized

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(str(value)).quantize(_QUANTUM)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp normalized to UTC.

    Naive values are taken to be UTC.  SQLite drops tzinfo on storage, so
    results are re-tagged as UTC on load.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        value = value.astimezone(UTC)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Contract:
        Every ORM model inherits from Base, which provides a UUID primary
        key and a type_annotation_map enforcing consistent column types.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - Decimal maps to Liters -- exact, three decimal places.
        - datetime maps to UTCDateTime -- always timezone-aware.
        - int maps to BigInteger -- safe for monotonic sequences.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Liters(),
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


UUID = UUIDString
