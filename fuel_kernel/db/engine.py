"""
Module: fuel_kernel.db.engine
Responsibility: Builds the process-wide engine and session factory for the
    fuel ledger database and hands out transactional sessions.
Architecture position: Kernel > DB.  Imports models only inside
    create_tables/drop_tables.

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED; every ledger mutation takes
      SELECT ... FOR UPDATE on the tank row before reading lots.
    - SQLite opens every transaction with BEGIN IMMEDIATE, so concurrent
      writers queue on the database lock instead of interleaving, and
      foreign keys are switched on per connection.
    - Sessions keep attribute values after commit (expire_on_commit=False)
      so detached results stay readable.

Failure modes:
    - RuntimeError from any accessor used before init_engine_from_url().
    - On PostgreSQL, pool exhaustion once pool_size + max_overflow
      connections are checked out.

Audit relevance:
    session_scope() commits or rolls back as one unit, so a tank's physical
    reading and its lots never land half-written.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from fuel_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_NOT_INITIALIZED = "Database engine not initialized; call init_engine_from_url() first."

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def _sqlite_engine(database_url: str, echo: bool, busy_timeout: float) -> Engine:
    engine = create_engine(
        database_url,
        echo=echo,
        connect_args={"timeout": busy_timeout, "check_same_thread": False},
    )

    # pysqlite's own transaction handling is switched off so that BEGIN
    # IMMEDIATE takes the write lock at the start of every transaction.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    busy_timeout: float = 30.0,
) -> Engine:
    """
    Create the engine and session factory, replacing any previous ones.

    Args:
        database_url: ``postgresql://...`` in production, ``sqlite:///path``
            for local runs and tests.
        echo: Log every SQL statement.
        pool_size, max_overflow, pool_pre_ping, pool_timeout, pool_recycle:
            QueuePool settings (PostgreSQL only).
        busy_timeout: Seconds a SQLite connection waits for the write lock.
    """
    global _engine, _session_factory

    backend = make_url(database_url).get_backend_name()
    if backend == "sqlite":
        engine = _sqlite_engine(database_url, echo, busy_timeout)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    _engine = engine
    _session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": backend, "echo": echo})
    return engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory for per-request (or per-thread) sessions."""
    if _session_factory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _session_factory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    One transaction: commit on clean exit, roll back and re-raise otherwise.

    Usage:
        with session_scope() as session:
            LotLedgerService(session, clock).add_lot(tank_id, mrn, quantity)
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create the ledger schema and register the append-only ORM listeners."""
    from fuel_kernel.db.base import Base
    from fuel_kernel.db.immutability import register_immutability_listeners
    import fuel_kernel.models  # noqa: F401

    Base.metadata.create_all(get_engine())
    register_immutability_listeners()
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables() -> None:
    """Drop the ledger schema.  Destroys all data; meant for tests and --drop."""
    from fuel_kernel.db.base import Base
    import fuel_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def is_postgres() -> bool:
    return _engine is not None and _engine.dialect.name == "postgresql"


atexit.register(reset_engine)
