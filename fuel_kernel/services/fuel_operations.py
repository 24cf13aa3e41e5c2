"""
FuelOperationService -- transactional entry point for fuel operations.

Responsibility:
    The surface the request layer calls.  Each public method is one unit of
    work run by TransactionRunner: intake, outgoing draws (fueling, drain,
    tanker transfer), tank-to-tank transfer, corrections, override issuance,
    consistency checks and legacy breakdown ingestion.

Architecture position:
    Kernel > Services -- orchestrator over LotLedgerService,
    AllocationService, OverrideTokenService, CorrectionService and
    ConsistencyChecker.  Owns the transaction boundary via TransactionRunner.

Invariants enforced:
    - Consistency gate: an outgoing draw on a tank that is not consistent
      needs an override token for that tank and operation class.  The
      check runs under the tank lock, and the token is consumed in the
      same transaction as the draw.
    - Tank-to-tank transfers lock both tanks in id order.
    - Operator identity is per call (operator_id argument, bound into
      LogContext for the duration of the call); nothing process-wide
      holds it.

Failure modes:
    - Every error of the underlying services propagates after rollback.
    - OptimisticLockError after the retry budget is spent.
"""

import json
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from fuel_kernel.db.types import ZERO, to_liters
from fuel_kernel.domain.clock import Clock, SystemClock
from fuel_kernel.domain.legacy_breakdown import dump_legacy_breakdown, parse_legacy_breakdown
from fuel_kernel.domain.policy import DEFAULT_POLICY, LedgerPolicy
from fuel_kernel.domain.values import (
    AllocationBreakdown,
    BreakdownLine,
    ConsistencyResult,
    LotRef,
)
from fuel_kernel.exceptions import (
    InvalidTransferError,
    LegacyBreakdownFormatError,
    NonPositiveQuantityError,
    OverrideRequiredError,
)
from fuel_kernel.logging_config import LogContext, get_logger
from fuel_kernel.models.correction import CorrectionAction, CorrectionRecord
from fuel_kernel.models.movement import AllocationLine, FuelMovement, MovementType
from fuel_kernel.models.mrn_lot import MrnLot
from fuel_kernel.models.override_token import OverrideOperation, OverrideToken
from fuel_kernel.selectors.consistency import ConsistencyChecker
from fuel_kernel.services.allocation import AllocationService
from fuel_kernel.services.correction import CorrectionService
from fuel_kernel.services.lot_ledger import LotLedgerService
from fuel_kernel.services.override_tokens import OverrideTokenService
from fuel_kernel.services.transaction_runner import TransactionRunner

logger = get_logger("services.fuel_operations")

T = TypeVar("T")

_OUTGOING = {
    MovementType.FUELING: OverrideOperation.FUELING,
    MovementType.DRAIN: OverrideOperation.DRAIN,
    MovementType.TANKER_TRANSFER: OverrideOperation.TRANSFER,
    MovementType.TRANSFER_OUT: OverrideOperation.TRANSFER,
}


class _UnitOfWork:
    """Services bound to one session."""

    def __init__(self, session: Session, clock: Clock, policy: LedgerPolicy):
        self.session = session
        self.ledger = LotLedgerService(session, clock)
        self.tokens = OverrideTokenService(
            session, clock, window_seconds=policy.override_window_seconds
        )
        self.allocation = AllocationService(session, clock, ledger=self.ledger)
        self.correction = CorrectionService(
            session, clock, tokens=self.tokens, ledger=self.ledger
        )
        self.checker = ConsistencyChecker(session, clock, minor_ratio=policy.minor_ratio)


class FuelOperationService:
    """
    One transaction per fuel operation.

    Contract:
        Callers pass identifiers and quantities; they never see a session.
        Return values are immutable snapshots or detached, fully-loaded rows.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        policy: LedgerPolicy = DEFAULT_POLICY,
        runner: TransactionRunner | None = None,
    ):
        self.clock = clock or SystemClock()
        self.policy = policy
        self.runner = runner or TransactionRunner(
            session_factory,
            max_retries=policy.max_retries,
            backoff_seconds=policy.retry_backoff_seconds,
        )

    def _run(
        self,
        operation: str,
        work: Callable[[_UnitOfWork], T],
        *,
        operator_id: str | None = None,
        tank_id: UUID | None = None,
    ) -> T:
        with LogContext.bind(
            correlation_id=LogContext.get("correlation_id") or str(uuid4()),
            operator_id=operator_id,
            tank_id=tank_id,
        ):
            return self.runner.run(
                lambda session: work(_UnitOfWork(session, self.clock, self.policy)),
                operation=operation,
            )

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def record_intake(
        self,
        tank_id: UUID,
        quantity: Decimal,
        *,
        mrn: str | None = None,
        operator_id: str | None = None,
        occurred_at: datetime | None = None,
        reference: str | None = None,
    ) -> LotRef:
        """
        Receive fuel into a tank.  ``mrn=None`` records an untracked intake
        under a system sentinel MRN.
        """

        def work(uow: _UnitOfWork) -> LotRef:
            lot_mrn = mrn
            if lot_mrn is None:
                lot_mrn = uow.ledger.generate_untracked_mrn(uow.ledger.lock_tank(tank_id))
            ref = uow.ledger.add_lot(
                tank_id,
                lot_mrn,
                quantity,
                timestamp=occurred_at,
                origin_reference=reference,
            )
            uow.session.add(
                FuelMovement(
                    tank_id=tank_id,
                    movement_type=MovementType.INTAKE.value,
                    quantity=ref.quantity_added,
                    reference=reference or lot_mrn,
                    operator_id=operator_id,
                    occurred_at=occurred_at or self.clock.now(),
                )
            )
            uow.session.flush()
            return ref

        return self._run("record_intake", work, operator_id=operator_id, tank_id=tank_id)

    # ------------------------------------------------------------------
    # Outgoing draws
    # ------------------------------------------------------------------

    def _gate(
        self,
        uow: _UnitOfWork,
        tank_id: UUID,
        operation: OverrideOperation,
        override_token: str | None,
    ) -> None:
        """Block a draw on an inconsistent tank unless a token authorizes it."""
        uow.ledger.lock_tank(tank_id)
        result = uow.checker.check(tank_id)
        if result.is_consistent:
            return
        if not override_token:
            logger.warning(
                "operation_blocked_inconsistent",
                extra={
                    "tank_id": str(tank_id),
                    "operation_type": operation.value,
                    "status": result.status.value,
                    "difference": str(result.difference),
                },
            )
            raise OverrideRequiredError(
                str(tank_id),
                operation.value,
                reason=(
                    f"tank is {result.status.value}: physical "
                    f"{result.physical_quantity}, MRN lots {result.ledger_quantity}"
                ),
            )
        uow.tokens.consume(override_token, tank_id, operation)

    def _after_check(self, uow: _UnitOfWork, tank_id: UUID) -> None:
        result = uow.checker.check(tank_id)
        if not result.is_consistent:
            logger.warning(
                "tank_inconsistent_after_operation",
                extra={
                    "tank_id": str(tank_id),
                    "status": result.status.value,
                    "difference": str(result.difference),
                },
            )

    def _outgoing(
        self,
        movement_type: MovementType,
        tank_id: UUID,
        quantity: Decimal,
        operator_id: str | None,
        reference: str | None,
        override_token: str | None,
        notes: str | None,
    ) -> AllocationBreakdown:
        operation = _OUTGOING[movement_type]

        def work(uow: _UnitOfWork) -> AllocationBreakdown:
            self._gate(uow, tank_id, operation, override_token)
            breakdown = uow.allocation.allocate(
                tank_id,
                quantity,
                reference,
                movement_type=movement_type,
                operator_id=operator_id,
                notes=notes,
            )
            self._after_check(uow, tank_id)
            return breakdown

        return self._run(
            f"record_{movement_type.value}", work, operator_id=operator_id, tank_id=tank_id
        )

    def record_fueling(
        self,
        tank_id: UUID,
        quantity: Decimal,
        *,
        operator_id: str | None = None,
        reference: str | None = None,
        override_token: str | None = None,
        notes: str | None = None,
    ) -> AllocationBreakdown:
        """Aircraft fueling out of a tank."""
        return self._outgoing(
            MovementType.FUELING, tank_id, quantity, operator_id, reference, override_token, notes
        )

    def record_drain(
        self,
        tank_id: UUID,
        quantity: Decimal,
        *,
        operator_id: str | None = None,
        reference: str | None = None,
        override_token: str | None = None,
        notes: str | None = None,
    ) -> AllocationBreakdown:
        return self._outgoing(
            MovementType.DRAIN, tank_id, quantity, operator_id, reference, override_token, notes
        )

    def record_tanker_transfer(
        self,
        tank_id: UUID,
        quantity: Decimal,
        *,
        operator_id: str | None = None,
        reference: str | None = None,
        override_token: str | None = None,
        notes: str | None = None,
    ) -> AllocationBreakdown:
        """Fuel pumped from a fixed tank into a mobile tanker."""
        return self._outgoing(
            MovementType.TANKER_TRANSFER,
            tank_id,
            quantity,
            operator_id,
            reference,
            override_token,
            notes,
        )

    def transfer_between_tanks(
        self,
        source_tank_id: UUID,
        target_tank_id: UUID,
        quantity: Decimal,
        *,
        operator_id: str | None = None,
        reference: str | None = None,
        override_token: str | None = None,
    ) -> AllocationBreakdown:
        """
        Move fuel between two fixed tanks.  The MRNs drawn from the source
        are deposited into the target (topping up lots it already holds).
        """
        if source_tank_id == target_tank_id:
            raise InvalidTransferError(str(source_tank_id))

        def work(uow: _UnitOfWork) -> AllocationBreakdown:
            for tank_id in sorted((source_tank_id, target_tank_id), key=str):
                uow.ledger.lock_tank(tank_id)
            self._gate(uow, source_tank_id, OverrideOperation.TRANSFER, override_token)

            breakdown = uow.allocation.allocate(
                source_tank_id,
                quantity,
                reference,
                movement_type=MovementType.TRANSFER_OUT,
                operator_id=operator_id,
                counterpart_tank_id=target_tank_id,
            )

            now = self.clock.now()
            inbound = FuelMovement(
                tank_id=target_tank_id,
                movement_type=MovementType.TRANSFER_IN.value,
                quantity=breakdown.total,
                reference=reference,
                counterpart_tank_id=source_tank_id,
                operator_id=operator_id,
                occurred_at=now,
            )
            uow.session.add(inbound)
            uow.session.flush()

            for position, line in enumerate(breakdown.lines, start=1):
                ref = uow.ledger.add_lot(
                    target_tank_id,
                    line.mrn,
                    line.quantity,
                    timestamp=now,
                    origin_reference=str(breakdown.movement_id),
                    allow_balancing=True,
                )
                uow.session.add(
                    AllocationLine(
                        movement_id=inbound.id,
                        lot_id=ref.lot_id,
                        mrn=line.mrn,
                        quantity=line.quantity,
                        position=position,
                    )
                )
            uow.session.flush()

            logger.info(
                "tank_transfer_completed",
                extra={
                    "source_tank_id": str(source_tank_id),
                    "target_tank_id": str(target_tank_id),
                    "quantity": str(breakdown.total),
                    "mrns": list(breakdown.mrns),
                },
            )
            self._after_check(uow, source_tank_id)
            self._after_check(uow, target_tank_id)
            return breakdown

        return self._run(
            "transfer_between_tanks", work, operator_id=operator_id, tank_id=source_tank_id
        )

    # ------------------------------------------------------------------
    # Supervision
    # ------------------------------------------------------------------

    def issue_override(
        self,
        tank_id: UUID,
        operation_type: OverrideOperation | str,
        *,
        notes: str | None = None,
        issued_by: str | None = None,
    ) -> OverrideToken:
        return self._run(
            "issue_override",
            lambda uow: uow.tokens.issue(tank_id, operation_type, notes, issued_by),
            operator_id=issued_by,
            tank_id=tank_id,
        )

    def correct(
        self,
        tank_id: UUID,
        action: CorrectionAction | str,
        *,
        operator_id: str,
        notes: str | None = None,
        override_token: str | None = None,
    ) -> CorrectionRecord:
        return self._run(
            "correct",
            lambda uow: uow.correction.correct(
                tank_id, action, operator_id, notes, override_token
            ),
            operator_id=operator_id,
            tank_id=tank_id,
        )

    def check(self, tank_id: UUID) -> ConsistencyResult:
        return self._run("check", lambda uow: uow.checker.check(tank_id), tank_id=tank_id)

    def check_all(self) -> tuple[ConsistencyResult, ...]:
        return self._run("check_all", lambda uow: uow.checker.check_all())

    # ------------------------------------------------------------------
    # Legacy ingestion
    # ------------------------------------------------------------------

    def ingest_legacy_movement(
        self,
        tank_id: UUID,
        movement_type: MovementType | str,
        blob: str | list,
        *,
        quantity: Decimal | None = None,
        reference: str | None = None,
        operator_id: str | None = None,
        occurred_at: datetime | None = None,
    ) -> AllocationBreakdown:
        """
        Store a historical movement whose breakdown arrives as a legacy JSON
        blob.  The lines become first-class AllocationLine rows; lots and the
        tank quantity are left as they are.
        """
        lines = parse_legacy_breakdown(blob)
        if not lines:
            raise LegacyBreakdownFormatError("breakdown has no entries")
        total = sum((line.quantity for line in lines), ZERO)
        if quantity is not None:
            expected = to_liters(quantity)
            if expected <= ZERO:
                raise NonPositiveQuantityError(expected)
            if expected != total:
                raise LegacyBreakdownFormatError(
                    f"entries sum to {total}, movement quantity is {expected}"
                )

        def work(uow: _UnitOfWork) -> AllocationBreakdown:
            tank = uow.ledger.get_tank(tank_id)
            movement = FuelMovement(
                tank_id=tank.id,
                movement_type=MovementType(movement_type).value,
                quantity=total,
                reference=reference,
                operator_id=operator_id,
                occurred_at=occurred_at or self.clock.now(),
                legacy_breakdown=json.loads(dump_legacy_breakdown(lines)),
            )
            uow.session.add(movement)
            uow.session.flush()

            lot_ids = dict(
                uow.session.execute(
                    select(MrnLot.mrn, MrnLot.id).where(MrnLot.tank_id == tank.id)
                ).all()
            )
            for position, line in enumerate(lines, start=1):
                uow.session.add(
                    AllocationLine(
                        movement_id=movement.id,
                        lot_id=lot_ids.get(line.mrn),
                        mrn=line.mrn,
                        quantity=line.quantity,
                        position=position,
                    )
                )
            uow.session.flush()

            logger.info(
                "legacy_movement_ingested",
                extra={
                    "tank_id": str(tank.id),
                    "movement_id": str(movement.id),
                    "line_count": len(lines),
                    "quantity": str(total),
                },
            )
            return AllocationBreakdown(
                tank_id=tank.id,
                total=total,
                lines=tuple(
                    BreakdownLine(line.mrn, line.quantity, lot_ids.get(line.mrn))
                    for line in lines
                ),
                movement_id=movement.id,
                movement_reference=reference,
            )

        return self._run(
            "ingest_legacy_movement", work, operator_id=operator_id, tank_id=tank_id
        )
