"""
TransactionRunner -- one unit of work per transaction, with bounded retry.

Responsibility:
    Runs a callable against a fresh session, commits on success, rolls back
    on failure, and retries only conflicts that a fresh attempt can resolve:
    optimistic-lock (version) conflicts, serialization failures, deadlocks
    and SQLite busy locks.

Architecture position:
    Kernel > Services -- transaction boundary.  The ONLY place in the kernel
    that commits.

Invariants enforced:
    - A failed attempt is rolled back in full before the next one starts.
    - Non-retryable errors propagate unchanged after rollback.
    - At most ``max_retries`` retries; the last conflict surfaces as
      OptimisticLockError.
"""

import random
import time
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from fuel_kernel.exceptions import ConcurrencyError, OptimisticLockError
from fuel_kernel.logging_config import get_logger

logger = get_logger("services.transaction_runner")

T = TypeVar("T")

# PostgreSQL SQLSTATEs: serialization_failure, deadlock_detected
_RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})

_RETRYABLE_PATTERNS = (
    "deadlock",
    "serialization failure",
    "could not serialize",
    "database is locked",
)


def is_retryable_error(error: BaseException) -> bool:
    """True if a fresh transaction may succeed where this one failed."""
    if isinstance(error, (ConcurrencyError, StaleDataError)):
        return True
    if isinstance(error, DBAPIError):
        sqlstate = getattr(error.orig, "pgcode", None)
        if sqlstate in _RETRYABLE_SQLSTATES:
            return True
        if isinstance(error, OperationalError):
            message = str(error.orig).lower()
            return any(pattern in message for pattern in _RETRYABLE_PATTERNS)
    return False


class TransactionRunner:
    """
    Commit-or-rollback executor with exponential backoff.

    Backoff before retry n (1-based) is backoff_seconds * 2**(n-1) plus up
    to 50% jitter.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        max_retries: int = 3,
        backoff_seconds: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session_factory = session_factory
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    def run(self, work: Callable[[Session], T], operation: str = "unit_of_work") -> T:
        attempt = 0
        while True:
            session = self.session_factory()
            try:
                result = work(session)
                session.commit()
                if attempt:
                    logger.info(
                        "transaction_succeeded_after_retry",
                        extra={"operation": operation, "attempt": attempt + 1},
                    )
                return result
            except Exception as exc:
                session.rollback()
                if not is_retryable_error(exc):
                    raise
                if attempt >= self.max_retries:
                    logger.error(
                        "transaction_retries_exhausted",
                        extra={"operation": operation, "attempts": attempt + 1},
                    )
                    if isinstance(exc, OptimisticLockError):
                        raise
                    raise OptimisticLockError("transaction", operation) from exc
                attempt += 1
                delay = self.backoff_seconds * (2 ** (attempt - 1))
                delay += random.uniform(0, delay / 2)
                logger.warning(
                    "transaction_retry",
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "max_retries": self.max_retries,
                        "delay_seconds": round(delay, 3),
                        "error_type": type(exc).__name__,
                    },
                )
                self._sleep(delay)
            finally:
                session.close()
