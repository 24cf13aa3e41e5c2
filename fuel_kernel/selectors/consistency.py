"""
Module: fuel_kernel.selectors.consistency
Responsibility: Consistency Checker -- compares each tank's physical reading
    with the sum of its MRN lots and classifies the drift.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Snapshot consistency: a tank's physical quantity and its lots are read
      by ONE statement (tank LEFT OUTER JOIN lots), so both halves come from
      the same committed state even under READ COMMITTED.
    - No side effects.

Classification: see fuel_kernel.domain.consistency.
"""

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from fuel_kernel.db.types import ZERO
from fuel_kernel.domain.clock import Clock
from fuel_kernel.domain.consistency import DEFAULT_MINOR_RATIO, classify_difference
from fuel_kernel.domain.values import ConsistencyResult, ConsistencySummary
from fuel_kernel.exceptions import TankNotFoundError
from fuel_kernel.logging_config import get_logger
from fuel_kernel.models.mrn_lot import MrnLot
from fuel_kernel.models.tank import FuelTank, TankStatus
from fuel_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.consistency")


class ConsistencyChecker(BaseSelector):
    """
    Read-side consistency checks.

    Guarantees:
        - check() and check_all() never mutate.
        - Results are ordered by tank identifier in check_all().
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        minor_ratio: Decimal = DEFAULT_MINOR_RATIO,
    ):
        super().__init__(session, clock)
        self.minor_ratio = minor_ratio

    def _snapshot_rows(self, *criteria):
        stmt = (
            select(
                FuelTank.id,
                FuelTank.identifier,
                FuelTank.name,
                FuelTank.current_quantity,
                FuelTank.capacity,
                MrnLot.remaining_quantity,
            )
            .outerjoin(MrnLot, MrnLot.tank_id == FuelTank.id)
            .where(*criteria)
            .order_by(FuelTank.identifier)
        )
        return self.session.execute(stmt).all()

    def _results(self, rows: Iterable) -> list[ConsistencyResult]:
        now = self.clock.now()
        grouped: dict[UUID, dict] = {}
        for tank_id, identifier, name, physical, capacity, remaining in rows:
            entry = grouped.setdefault(
                tank_id,
                {
                    "name": name,
                    "physical": physical,
                    "capacity": capacity,
                    "ledger": ZERO,
                    "lots": 0,
                },
            )
            if remaining is not None:
                entry["ledger"] += remaining
                entry["lots"] += 1

        results = []
        for tank_id, entry in grouped.items():
            physical = entry["physical"]
            ledger = entry["ledger"]
            results.append(
                ConsistencyResult(
                    tank_id=tank_id,
                    tank_name=entry["name"],
                    physical_quantity=physical,
                    ledger_quantity=ledger,
                    difference=physical - ledger,
                    status=classify_difference(physical, ledger, self.minor_ratio),
                    checked_at=now,
                    lot_count=entry["lots"],
                    over_capacity=physical > entry["capacity"],
                )
            )
        return results

    def check(self, tank_id: UUID) -> ConsistencyResult:
        """
        Compare one tank's physical quantity with its lot sum.

        Raises:
            TankNotFoundError: tank does not exist.
        """
        results = self._results(self._snapshot_rows(FuelTank.id == tank_id))
        if not results:
            raise TankNotFoundError(str(tank_id))
        result = results[0]
        self._log(result)
        return result

    def check_all(self) -> tuple[ConsistencyResult, ...]:
        """One result per active tank."""
        results = tuple(
            self._results(
                self._snapshot_rows(FuelTank.status == TankStatus.ACTIVE.value)
            )
        )
        for result in results:
            self._log(result)
        summary = ConsistencySummary.of(results)
        logger.info(
            "consistency_check_all_completed",
            extra={
                "tank_count": summary.total,
                "consistent": summary.consistent,
                "minor": summary.minor,
                "major": summary.major,
            },
        )
        return results

    def summarize(self) -> ConsistencySummary:
        return ConsistencySummary.of(self.check_all())

    def _log(self, result: ConsistencyResult) -> None:
        extra = {
            "tank_id": str(result.tank_id),
            "status": result.status.value,
            "physical_quantity": str(result.physical_quantity),
            "ledger_quantity": str(result.ledger_quantity),
            "difference": str(result.difference),
        }
        if result.is_consistent:
            logger.debug("consistency_checked", extra=extra)
        else:
            logger.warning("tank_inconsistent", extra=extra)
