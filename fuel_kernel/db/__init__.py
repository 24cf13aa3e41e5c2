"""Database layer - engine, base classes and column types."""

from fuel_kernel.db.base import UUID, Base, Liters, UTCDateTime, UUIDString
from fuel_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    session_scope,
)
from fuel_kernel.db.types import ZERO, Quantity, to_liters

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "UUIDString",
    "UUID",
    "Liters",
    "UTCDateTime",
    "Quantity",
    "ZERO",
    "to_liters",
]
