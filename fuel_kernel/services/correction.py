"""
CorrectionService -- supervised corrections of ledger/physical drift.

Responsibility:
    Applies one CorrectionAction to an inconsistent tank, consumes the
    override token that authorizes it, and writes the CorrectionRecord,
    all inside the caller's transaction.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes, never commits.

Actions (difference = physical - ledger_sum):
    ADJUST_TANK           physical := ledger_sum
    ADJUST_MRN            spread the difference over the lots, most recent
                          first, each clamped to [0, original]
    CREATE_BALANCING_MRN  add a system-generated BAL- lot holding a positive
                          difference

Invariants enforced:
    - Every precondition is checked before the token is consumed and before
      any row changes.
    - Mutation, token consumption and CorrectionRecord land in one flush
      sequence of one transaction.
    - After a successful correction the tank is consistent.

Failure modes:
    - OverrideRequiredError when no token is presented.
    - TankAlreadyConsistentError when there is nothing to correct.
    - UnresolvableAdjustmentError (ADJUST_MRN) with the unresolved amount.
    - NegativeBalancingQuantityError (CREATE_BALANCING_MRN) on a deficit.
    - Token errors from OverrideTokenService.consume().
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from fuel_kernel.db.types import ZERO
from fuel_kernel.domain.adjustment import AdjustmentPlan, plan_mrn_adjustment
from fuel_kernel.domain.clock import Clock
from fuel_kernel.domain.mrn import balancing_mrn
from fuel_kernel.exceptions import (
    NegativeBalancingQuantityError,
    OverrideRequiredError,
    TankAlreadyConsistentError,
    UnresolvableAdjustmentError,
)
from fuel_kernel.logging_config import get_logger
from fuel_kernel.models.correction import CorrectionAction, CorrectionRecord
from fuel_kernel.models.mrn_lot import MrnLot
from fuel_kernel.models.override_token import OverrideOperation
from fuel_kernel.models.tank import FuelTank
from fuel_kernel.services.base import BaseService
from fuel_kernel.services.lot_ledger import LotLedgerService, lot_snapshot
from fuel_kernel.services.override_tokens import OverrideTokenService

logger = get_logger("services.correction")


def _ledger_snapshot(tank: FuelTank, lots: list[MrnLot]) -> dict:
    ledger_sum = sum((lot.remaining_quantity for lot in lots), ZERO)
    return {
        "tank_quantity": str(tank.current_quantity),
        "ledger_quantity": str(ledger_sum),
        "difference": str(tank.current_quantity - ledger_sum),
        "lots": {lot.mrn: str(lot.remaining_quantity) for lot in lots},
    }


class CorrectionService(BaseService):
    """
    Three supervised corrective actions behind the override-token gate.

    Contract:
        ``correct`` dispatches exhaustively on CorrectionAction.  Every
        action is validated in full before anything is written.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        tokens: OverrideTokenService | None = None,
        ledger: LotLedgerService | None = None,
    ):
        super().__init__(session, clock)
        self.tokens = tokens or OverrideTokenService(session, self.clock)
        self.ledger = ledger or LotLedgerService(session, self.clock)

    def correct(
        self,
        tank_id: UUID,
        action: CorrectionAction | str,
        operator_id: str,
        notes: str | None = None,
        override_token: str | None = None,
    ) -> CorrectionRecord:
        action = CorrectionAction(action)
        if not override_token:
            raise OverrideRequiredError(
                str(tank_id),
                OverrideOperation.CORRECTION.value,
                reason=f"{action.value} requires an override token",
            )

        tank = self.ledger.lock_tank(tank_id)
        lots = self.ledger.load_lots(tank.id)
        ledger_sum = sum((lot.remaining_quantity for lot in lots), ZERO)
        difference = tank.current_quantity - ledger_sum

        if difference == ZERO:
            raise TankAlreadyConsistentError(str(tank.id))

        # Validate before consuming the token or touching a row
        adjustment: AdjustmentPlan | None = None
        if action is CorrectionAction.ADJUST_MRN:
            adjustment = plan_mrn_adjustment([lot_snapshot(lot) for lot in lots], difference)
            if not adjustment.is_resolved:
                logger.warning(
                    "correction_unresolvable",
                    extra={
                        "tank_id": str(tank.id),
                        "delta": str(difference),
                        "unresolved": str(adjustment.unresolved),
                    },
                )
                raise UnresolvableAdjustmentError(
                    str(tank.id), difference, adjustment.unresolved
                )
        elif action is CorrectionAction.CREATE_BALANCING_MRN and difference < ZERO:
            raise NegativeBalancingQuantityError(str(tank.id), difference)

        token = self.tokens.consume(
            override_token, tank.id, OverrideOperation.CORRECTION
        )
        before = _ledger_snapshot(tank, lots)

        if action is CorrectionAction.ADJUST_TANK:
            self._adjust_tank(tank, ledger_sum)
        elif action is CorrectionAction.ADJUST_MRN:
            self._adjust_mrn(lots, adjustment)
        elif action is CorrectionAction.CREATE_BALANCING_MRN:
            self._create_balancing_lot(tank, difference)
        else:
            raise ValueError(f"Unhandled correction action: {action!r}")

        tank.ledger_touched_at = self.clock.now()
        self.session.flush()

        lots_after = self.ledger.load_lots(tank.id)
        record = CorrectionRecord(
            tank_id=tank.id,
            action=action.value,
            operator_id=operator_id,
            notes=notes,
            override_token_id=token.id,
            before_snapshot=before,
            after_snapshot=_ledger_snapshot(tank, lots_after),
            created_at=self.clock.now(),
        )
        self.session.add(record)
        self.session.flush()

        logger.info(
            "correction_applied",
            extra={
                "tank_id": str(tank.id),
                "action": action.value,
                "operator_id": operator_id,
                "difference": str(difference),
                "correction_id": str(record.id),
            },
        )
        return record

    # ------------------------------------------------------------------
    # Action handlers
    # ------------------------------------------------------------------

    def _adjust_tank(self, tank: FuelTank, ledger_sum: Decimal) -> None:
        tank.current_quantity = ledger_sum

    def _adjust_mrn(self, lots: list[MrnLot], plan: AdjustmentPlan) -> None:
        lots_by_id = {lot.id: lot for lot in lots}
        for change in plan.adjustments:
            lots_by_id[change.lot_id].remaining_quantity = change.remaining_after

    def _create_balancing_lot(self, tank: FuelTank, quantity: Decimal) -> None:
        now = self.clock.now()
        self.ledger.record_lot(
            tank,
            balancing_mrn(now, tank.id, tank.next_lot_sequence),
            quantity,
            intake_at=now,
            origin_reference="correction",
            system_generated=True,
        )
