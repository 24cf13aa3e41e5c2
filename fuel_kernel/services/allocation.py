"""
AllocationService -- FIFO draw-down of outgoing fuel across MRN lots.

Responsibility:
    Applies a ``plan_fifo_draw`` plan to a tank's lots under the tank row
    lock, lowers the physical quantity by the same total, and records the
    movement with its allocation lines.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes, never commits.

Invariants enforced:
    - Lots drawn oldest first; ties broken by insertion sequence.
    - sum(breakdown) == requested quantity exactly.
    - On any failure nothing is mutated: coverage is checked against the
      plan before a single row changes.
    - Physical quantity never goes below zero.

Failure modes:
    - NonPositiveQuantityError if requested <= 0.
    - InsufficientLotCoverageError (with the uncovered amount) if the lots
      cannot cover the draw.
    - InsufficientTankQuantityError if the physical reading cannot.
"""

import time
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from fuel_kernel.db.types import ZERO, to_liters
from fuel_kernel.domain.allocation import plan_fifo_draw
from fuel_kernel.domain.clock import Clock
from fuel_kernel.domain.values import AllocationBreakdown
from fuel_kernel.exceptions import (
    InsufficientLotCoverageError,
    InsufficientTankQuantityError,
    NonPositiveQuantityError,
)
from fuel_kernel.logging_config import get_logger
from fuel_kernel.models.movement import AllocationLine, FuelMovement, MovementType
from fuel_kernel.services.base import BaseService
from fuel_kernel.services.lot_ledger import LotLedgerService, lot_snapshot

logger = get_logger("services.allocation")


class AllocationService(BaseService):
    """
    Outgoing draws against a single tank.

    Contract:
        ``allocate`` either applies the whole draw (lots, tank quantity,
        movement, allocation lines) or raises before touching any row.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        ledger: LotLedgerService | None = None,
    ):
        super().__init__(session, clock)
        self.ledger = ledger or LotLedgerService(session, self.clock)

    def allocate(
        self,
        tank_id: UUID,
        requested_quantity: Decimal,
        movement_ref: str | None = None,
        *,
        movement_type: MovementType = MovementType.FUELING,
        operator_id: str | None = None,
        counterpart_tank_id: UUID | None = None,
        notes: str | None = None,
        occurred_at: datetime | None = None,
    ) -> AllocationBreakdown:
        """
        Draw ``requested_quantity`` litres from the tank, oldest lot first.

        Returns:
            AllocationBreakdown naming the MRN and quantity of every draw,
            in draw order, linked to the recorded movement.
        """
        t0 = time.monotonic()
        requested = to_liters(requested_quantity)
        if requested <= ZERO:
            raise NonPositiveQuantityError(requested, field="requested_quantity")

        tank = self.ledger.lock_tank(tank_id)
        lots = self.ledger.load_lots(tank.id)
        plan = plan_fifo_draw([lot_snapshot(lot) for lot in lots], requested)

        if not plan.is_covered:
            logger.warning(
                "allocation_insufficient_coverage",
                extra={
                    "tank_id": str(tank.id),
                    "requested": str(requested),
                    "available": str(plan.drawn),
                    "uncovered": str(plan.uncovered),
                },
            )
            raise InsufficientLotCoverageError(
                tank_id=str(tank.id),
                requested=requested,
                available=plan.drawn,
            )

        if tank.current_quantity < requested:
            logger.warning(
                "allocation_insufficient_tank_quantity",
                extra={
                    "tank_id": str(tank.id),
                    "requested": str(requested),
                    "current_quantity": str(tank.current_quantity),
                },
            )
            raise InsufficientTankQuantityError(
                tank_id=str(tank.id),
                requested=requested,
                current=tank.current_quantity,
            )

        now = self.clock.now()
        lots_by_id = {lot.id: lot for lot in lots}
        for draw in plan.draws:
            lots_by_id[draw.lot_id].remaining_quantity = draw.remaining_after
            logger.debug(
                "lot_drawn",
                extra={
                    "tank_id": str(tank.id),
                    "mrn": draw.mrn,
                    "drawn": str(draw.quantity),
                    "remaining_after": str(draw.remaining_after),
                },
            )

        tank.current_quantity = tank.current_quantity - requested
        tank.ledger_touched_at = now

        movement = FuelMovement(
            tank_id=tank.id,
            movement_type=MovementType(movement_type).value,
            quantity=requested,
            reference=movement_ref,
            counterpart_tank_id=counterpart_tank_id,
            operator_id=operator_id,
            occurred_at=occurred_at or now,
            notes=notes,
        )
        self.session.add(movement)
        self.session.flush()

        for position, draw in enumerate(plan.draws, start=1):
            self.session.add(
                AllocationLine(
                    movement_id=movement.id,
                    lot_id=draw.lot_id,
                    mrn=draw.mrn,
                    quantity=draw.quantity,
                    position=position,
                )
            )
        self.session.flush()

        breakdown = AllocationBreakdown(
            tank_id=tank.id,
            total=requested,
            lines=plan.breakdown_lines(),
            movement_id=movement.id,
            movement_reference=movement_ref,
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info(
            "allocation_completed",
            extra={
                "tank_id": str(tank.id),
                "movement_id": str(movement.id),
                "movement_type": movement.movement_type,
                "requested": str(requested),
                "lot_count": len(plan.draws),
                "tank_quantity": str(tank.current_quantity),
                "duration_ms": duration_ms,
            },
        )
        return breakdown
