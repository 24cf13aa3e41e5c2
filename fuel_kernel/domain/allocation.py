"""
FIFO draw-down across MRN lots.

Responsibility:
    Decide, without touching storage, how a requested outgoing quantity is
    sourced from a tank's lots.  The AllocationService applies the plan to
    ORM rows under the tank lock.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - Lots are drawn oldest first: (intake_at, sequence) ascending.
    - Each draw is min(remaining, still_needed); no lot goes negative.
    - sum(draws) == requested whenever the plan is covered.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from fuel_kernel.domain.values import BreakdownLine, LotSnapshot
from fuel_kernel.exceptions import NonPositiveQuantityError

ZERO = Decimal("0")


@dataclass(frozen=True, slots=True)
class LotDraw:
    lot_id: UUID
    mrn: str
    quantity: Decimal
    remaining_after: Decimal


@dataclass(frozen=True, slots=True)
class DrawPlan:
    """Draws for one request, plus whatever the lots could not cover."""

    requested: Decimal
    draws: tuple[LotDraw, ...]
    uncovered: Decimal

    @property
    def is_covered(self) -> bool:
        return self.uncovered == ZERO

    @property
    def drawn(self) -> Decimal:
        return sum((d.quantity for d in self.draws), ZERO)

    def breakdown_lines(self) -> tuple[BreakdownLine, ...]:
        return tuple(
            BreakdownLine(mrn=d.mrn, quantity=d.quantity, lot_id=d.lot_id)
            for d in self.draws
        )


def ledger_order(lots: Iterable[LotSnapshot]) -> list[LotSnapshot]:
    return sorted(lots, key=lambda lot: lot.ledger_key)


def plan_fifo_draw(lots: Iterable[LotSnapshot], requested: Decimal) -> DrawPlan:
    """
    Plan a FIFO draw of ``requested`` litres.

    Raises:
        NonPositiveQuantityError: If requested <= 0.

    Example:
        Lots [(L1, 100), (L2, 50)] and a request of 120 give draws
        [(L1, 100), (L2, 20)], leaving L2 at 30.
    """
    if requested <= ZERO:
        raise NonPositiveQuantityError(requested, field="requested_quantity")

    still_needed = requested
    draws: list[LotDraw] = []
    for lot in ledger_order(lots):
        if still_needed == ZERO:
            break
        if lot.remaining_quantity <= ZERO:
            continue
        take = min(lot.remaining_quantity, still_needed)
        draws.append(
            LotDraw(
                lot_id=lot.lot_id,
                mrn=lot.mrn,
                quantity=take,
                remaining_after=lot.remaining_quantity - take,
            )
        )
        still_needed -= take

    return DrawPlan(requested=requested, draws=tuple(draws), uncovered=still_needed)
