"""
LotLedgerService -- per-tank ledger of MRN lots.

Responsibility:
    Intake of fuel as MRN lots, the tank row lock every mutation starts
    with, and snapshot reads of a tank's lots in ledger order.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes, never commits.

Invariants enforced:
    - add_lot changes the lot and the tank's physical quantity by the same
      amount in the same flush, under the tank row lock.
    - Lots are ordered by (intake_at, sequence); sequence comes from the
      tank's counter and is assigned under the lock.
    - A second intake of an MRN already held by the tank tops up that lot.
    - Standard MRN format, except system sentinels.  Intake never accepts a
      balancing MRN from a caller.

Failure modes:
    - InvalidMrnFormatError, NonPositiveQuantityError before any mutation.
    - TankNotFoundError if the tank does not exist.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from fuel_kernel.db.types import ZERO, to_liters
from fuel_kernel.domain.mrn import is_sentinel, untracked_mrn, validate_mrn
from fuel_kernel.domain.values import LotRef, LotSnapshot
from fuel_kernel.exceptions import NonPositiveQuantityError, TankNotFoundError
from fuel_kernel.logging_config import get_logger
from fuel_kernel.models.mrn_lot import MrnLot
from fuel_kernel.models.tank import FuelTank
from fuel_kernel.services.base import BaseService

logger = get_logger("services.lot_ledger")


def lot_snapshot(lot: MrnLot) -> LotSnapshot:
    return LotSnapshot(
        lot_id=lot.id,
        tank_id=lot.tank_id,
        mrn=lot.mrn,
        original_quantity=lot.original_quantity,
        remaining_quantity=lot.remaining_quantity,
        intake_at=lot.intake_at,
        sequence=lot.sequence,
        origin_reference=lot.origin_reference,
        is_system_generated=lot.is_system_generated,
    )


class LotLedgerService(BaseService):
    """
    Intake and ledger access for MRN lots.

    Contract:
        Every mutating method locks the tank row first.  Other services
        that mutate lots (allocation, correction) go through lock_tank()
        and load_lots() so all writers share one lock target.
    """

    # ------------------------------------------------------------------
    # Locking and loading
    # ------------------------------------------------------------------

    def lock_tank(self, tank_id: UUID) -> FuelTank:
        """SELECT ... FOR UPDATE on the tank row; reloads stale identity-map state."""
        tank = self.session.execute(
            select(FuelTank)
            .where(FuelTank.id == tank_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if tank is None:
            raise TankNotFoundError(str(tank_id))
        return tank

    def get_tank(self, tank_id: UUID) -> FuelTank:
        tank = self.session.get(FuelTank, tank_id)
        if tank is None:
            raise TankNotFoundError(str(tank_id))
        return tank

    def load_lots(self, tank_id: UUID) -> list[MrnLot]:
        """All lots of a tank in ledger order, refreshed from the database."""
        return list(
            self.session.execute(
                select(MrnLot)
                .where(MrnLot.tank_id == tank_id)
                .order_by(MrnLot.intake_at, MrnLot.sequence)
                .execution_options(populate_existing=True)
            ).scalars()
        )

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def add_lot(
        self,
        tank_id: UUID,
        mrn: str,
        quantity: Decimal,
        timestamp: datetime | None = None,
        origin_reference: str | None = None,
        *,
        allow_balancing: bool = False,
    ) -> LotRef:
        """
        Record an intake: append (or top up) a lot and raise the physical
        quantity by the same amount.

        ``allow_balancing`` admits a balancing MRN; only a transfer carrying
        an existing balancing lot into another tank sets it.

        Raises:
            InvalidMrnFormatError: MRN is neither customs-format nor a
                sentinel, or is a balancing MRN without allow_balancing.
            NonPositiveQuantityError: quantity <= 0.
            QuantityPrecisionError: quantity has more than three decimals.
            TankNotFoundError: tank does not exist.
        """
        validate_mrn(mrn, allow_balancing=allow_balancing)
        qty = to_liters(quantity)
        if qty <= ZERO:
            raise NonPositiveQuantityError(qty)

        tank = self.lock_tank(tank_id)
        ref = self.record_lot(
            tank,
            mrn,
            qty,
            intake_at=timestamp,
            origin_reference=origin_reference,
        )
        tank.current_quantity = tank.current_quantity + qty
        self.session.flush()

        if tank.current_quantity > tank.capacity:
            logger.warning(
                "tank_capacity_exceeded",
                extra={
                    "tank_id": str(tank.id),
                    "current_quantity": str(tank.current_quantity),
                    "capacity": str(tank.capacity),
                },
            )

        logger.info(
            "lot_added",
            extra={
                "tank_id": str(tank.id),
                "mrn": mrn,
                "quantity": str(qty),
                "topped_up": ref.topped_up,
                "tank_quantity": str(tank.current_quantity),
            },
        )
        return ref

    def record_lot(
        self,
        tank: FuelTank,
        mrn: str,
        quantity: Decimal,
        intake_at: datetime | None = None,
        origin_reference: str | None = None,
        system_generated: bool = False,
    ) -> LotRef:
        """
        Append a lot, or top up the tank's existing lot for ``mrn``.

        Leaves the tank's physical quantity alone.  The caller holds the
        tank lock (lock_tank) and has validated ``quantity``.
        """
        now = self.clock.now()
        tank.ledger_touched_at = now

        existing = self.session.execute(
            select(MrnLot)
            .where(MrnLot.tank_id == tank.id, MrnLot.mrn == mrn)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if existing is not None:
            existing.original_quantity = existing.original_quantity + quantity
            existing.remaining_quantity = existing.remaining_quantity + quantity
            self.session.flush()
            return LotRef(
                lot_id=existing.id,
                tank_id=tank.id,
                mrn=mrn,
                quantity_added=quantity,
                remaining_quantity=existing.remaining_quantity,
                sequence=existing.sequence,
                topped_up=True,
            )

        sequence = tank.next_lot_sequence
        tank.next_lot_sequence = sequence + 1
        lot = MrnLot(
            tank_id=tank.id,
            mrn=mrn,
            original_quantity=quantity,
            remaining_quantity=quantity,
            intake_at=intake_at or now,
            sequence=sequence,
            origin_reference=origin_reference,
            is_system_generated=system_generated or is_sentinel(mrn),
            created_at=now,
        )
        self.session.add(lot)
        self.session.flush()
        return LotRef(
            lot_id=lot.id,
            tank_id=tank.id,
            mrn=mrn,
            quantity_added=quantity,
            remaining_quantity=quantity,
            sequence=sequence,
        )

    def generate_untracked_mrn(self, tank: FuelTank) -> str:
        """Sentinel MRN for an intake without a customs document."""
        return untracked_mrn(self.clock.now(), tank.id, tank.next_lot_sequence)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_lots(
        self,
        tank_id: UUID,
        only_with_remaining: bool = False,
    ) -> tuple[LotSnapshot, ...]:
        """Immutable snapshot of the tank's lots in ledger order."""
        self.get_tank(tank_id)
        snapshots = (lot_snapshot(lot) for lot in self.load_lots(tank_id))
        if only_with_remaining:
            return tuple(s for s in snapshots if s.remaining_quantity > ZERO)
        return tuple(snapshots)

    def sum_remaining(self, tank_id: UUID) -> Decimal:
        """Exact sum of remaining quantity over all of the tank's lots."""
        self.get_tank(tank_id)
        return sum(
            (lot.remaining_quantity for lot in self.load_lots(tank_id)),
            ZERO,
        )
