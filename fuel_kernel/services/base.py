"""
BaseService -- shared constructor for the ledger's write-side services.

A service works inside a transaction it does not own.  It flushes so that
later reads in the same transaction see its rows, and leaves commit or
rollback to TransactionRunner, FuelOperationService or the test harness.
A tank's physical quantity and its MRN lots therefore move together or
not at all.
"""

from abc import ABC

from sqlalchemy.orm import Session

from fuel_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Holds the caller's ``Session`` and the ``Clock`` used for every timestamp
    the service writes.  Queries with no side effects live under
    ``fuel_kernel.selectors`` instead.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
