"""
Spill planner for the adjust-MRN correction.

Responsibility:
    Distribute a signed delta (physical - ledger_sum) across a tank's lots so
    the lot sum matches the physical reading.

Policy:
    - Lots are visited most recent first: (intake_at, sequence) descending.
    - Lots with remaining > 0 are visited before exhausted lots; exhausted
      lots can only absorb a positive delta.
    - Each lot is clamped to [0, original_quantity]; whatever it cannot
      absorb spills to the next lot.
    - Whatever is left after the last lot is reported as unresolved.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from fuel_kernel.domain.values import LotSnapshot

ZERO = Decimal("0")


@dataclass(frozen=True, slots=True)
class LotAdjustment:
    lot_id: UUID
    mrn: str
    remaining_before: Decimal
    remaining_after: Decimal

    @property
    def change(self) -> Decimal:
        return self.remaining_after - self.remaining_before


@dataclass(frozen=True, slots=True)
class AdjustmentPlan:
    delta: Decimal
    adjustments: tuple[LotAdjustment, ...]
    unresolved: Decimal

    @property
    def is_resolved(self) -> bool:
        return self.unresolved == ZERO


def spill_order(lots: Iterable[LotSnapshot]) -> list[LotSnapshot]:
    newest_first = sorted(lots, key=lambda lot: lot.ledger_key, reverse=True)
    live = [lot for lot in newest_first if lot.remaining_quantity > ZERO]
    exhausted = [lot for lot in newest_first if lot.remaining_quantity <= ZERO]
    return live + exhausted


def plan_mrn_adjustment(lots: Iterable[LotSnapshot], delta: Decimal) -> AdjustmentPlan:
    """
    Plan how ``delta`` is absorbed by the lots.

    A negative delta removes fuel from lots; a positive one restores it up
    to each lot's original quantity.
    """
    outstanding = delta
    adjustments: list[LotAdjustment] = []

    for lot in spill_order(lots):
        if outstanding == ZERO:
            break
        if outstanding < ZERO:
            absorbed = max(outstanding, -lot.remaining_quantity)
        else:
            absorbed = min(outstanding, lot.headroom)
        if absorbed == ZERO:
            continue
        adjustments.append(
            LotAdjustment(
                lot_id=lot.lot_id,
                mrn=lot.mrn,
                remaining_before=lot.remaining_quantity,
                remaining_after=lot.remaining_quantity + absorbed,
            )
        )
        outstanding -= absorbed

    return AdjustmentPlan(
        delta=delta,
        adjustments=tuple(adjustments),
        unresolved=outstanding,
    )
