"""
Module: fuel_kernel.selectors.movement_selector
Responsibility: Read access to recorded movements, their allocation
    breakdowns, and the correction audit trail of a tank.
Architecture position: Kernel > Selectors.  Read-only.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from fuel_kernel.domain.values import AllocationBreakdown, BreakdownLine
from fuel_kernel.models.correction import CorrectionRecord
from fuel_kernel.models.movement import FuelMovement
from fuel_kernel.selectors.base import BaseSelector


@dataclass(frozen=True, slots=True)
class MovementView:
    movement_id: UUID
    tank_id: UUID
    movement_type: str
    quantity: Decimal
    reference: str | None
    counterpart_tank_id: UUID | None
    operator_id: str | None
    occurred_at: datetime
    breakdown: tuple[BreakdownLine, ...]


@dataclass(frozen=True, slots=True)
class CorrectionView:
    correction_id: UUID
    tank_id: UUID
    action: str
    operator_id: str
    notes: str | None
    before: dict
    after: dict
    created_at: datetime


def _lines(movement: FuelMovement) -> tuple[BreakdownLine, ...]:
    return tuple(
        BreakdownLine(mrn=line.mrn, quantity=line.quantity, lot_id=line.lot_id)
        for line in movement.lines
    )


class MovementSelector(BaseSelector):
    """Movements, breakdowns and corrections for reporting callers."""

    def breakdown_for(self, movement_id: UUID) -> AllocationBreakdown | None:
        movement = self.session.execute(
            select(FuelMovement)
            .where(FuelMovement.id == movement_id)
            .options(selectinload(FuelMovement.lines))
        ).scalar_one_or_none()
        if movement is None or not movement.lines:
            return None
        return AllocationBreakdown(
            tank_id=movement.tank_id,
            total=movement.quantity,
            lines=_lines(movement),
            movement_id=movement.id,
            movement_reference=movement.reference,
        )

    def movements_for_tank(self, tank_id: UUID) -> tuple[MovementView, ...]:
        movements = self.session.execute(
            select(FuelMovement)
            .where(FuelMovement.tank_id == tank_id)
            .options(selectinload(FuelMovement.lines))
            .order_by(FuelMovement.occurred_at, FuelMovement.id)
        ).scalars()
        return tuple(
            MovementView(
                movement_id=m.id,
                tank_id=m.tank_id,
                movement_type=m.movement_type,
                quantity=m.quantity,
                reference=m.reference,
                counterpart_tank_id=m.counterpart_tank_id,
                operator_id=m.operator_id,
                occurred_at=m.occurred_at,
                breakdown=_lines(m),
            )
            for m in movements
        )

    def corrections_for_tank(self, tank_id: UUID) -> tuple[CorrectionView, ...]:
        records = self.session.execute(
            select(CorrectionRecord)
            .where(CorrectionRecord.tank_id == tank_id)
            .order_by(CorrectionRecord.created_at)
        ).scalars()
        return tuple(
            CorrectionView(
                correction_id=r.id,
                tank_id=r.tank_id,
                action=r.action,
                operator_id=r.operator_id,
                notes=r.notes,
                before=r.before_snapshot,
                after=r.after_snapshot,
                created_at=r.created_at,
            )
            for r in records
        )
