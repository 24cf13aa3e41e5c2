"""
OverrideTokenService -- single-use, short-lived authorizations.

Responsibility:
    Issues override tokens that let one operation class proceed on one tank
    despite an unresolved consistency check, and consumes them atomically
    with the guarded action.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes, never commits.

Invariants enforced:
    - A token authorizes at most one operation: consume() locks the token
      row and flips ``consumed`` in the caller's transaction.  If that
      transaction rolls back, the token is unused again.
    - A token is valid only for the tank and operation class it was
      issued for, and only until expires_at.

Failure modes:
    - TokenNotFoundError, TokenAlreadyConsumedError, TokenTankMismatchError,
      TokenExpiredError from consume().
    - TankNotFoundError from issue() for an unknown tank.

Audit relevance:
    Every use of a token is logged as ``consistency_override_used`` at
    WARNING, with the issuer, notes and tank.
"""

import secrets
from datetime import timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from fuel_kernel.domain.clock import Clock
from fuel_kernel.exceptions import (
    TankNotFoundError,
    TokenAlreadyConsumedError,
    TokenExpiredError,
    TokenNotFoundError,
    TokenTankMismatchError,
)
from fuel_kernel.logging_config import get_logger
from fuel_kernel.models.override_token import OverrideOperation, OverrideToken
from fuel_kernel.models.tank import FuelTank
from fuel_kernel.services.base import BaseService

logger = get_logger("services.override_tokens")

DEFAULT_WINDOW_SECONDS = 300


class OverrideTokenService(BaseService):
    """Issue and consume override tokens."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
    ):
        super().__init__(session, clock)
        self.window_seconds = window_seconds

    def issue(
        self,
        tank_id: UUID,
        operation_type: OverrideOperation | str,
        notes: str | None = None,
        issued_by: str | None = None,
    ) -> OverrideToken:
        operation = OverrideOperation(operation_type)
        if self.session.get(FuelTank, tank_id) is None:
            raise TankNotFoundError(str(tank_id))

        now = self.clock.now()
        token = OverrideToken(
            token=secrets.token_urlsafe(32),
            tank_id=tank_id,
            operation_type=operation.value,
            issued_at=now,
            expires_at=now + timedelta(seconds=self.window_seconds),
            notes=notes,
            issued_by=issued_by,
            consumed=False,
        )
        self.session.add(token)
        self.session.flush()

        logger.info(
            "override_issued",
            extra={
                "token_id": str(token.id),
                "tank_id": str(tank_id),
                "operation_type": operation.value,
                "expires_at": token.expires_at,
                "issued_by": issued_by,
            },
        )
        return token

    def consume(
        self,
        token: str,
        tank_id: UUID,
        operation_type: OverrideOperation | str,
    ) -> OverrideToken:
        """
        Mark ``token`` used for ``operation_type`` on ``tank_id``.

        The token row is locked for the rest of the caller's transaction.
        """
        operation = OverrideOperation(operation_type)
        row = self.session.execute(
            select(OverrideToken)
            .where(OverrideToken.token == token)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if row is None:
            logger.warning("override_token_not_found", extra={"tank_id": str(tank_id)})
            raise TokenNotFoundError(token)

        if row.consumed:
            logger.warning(
                "override_token_reused",
                extra={"token_id": str(row.id), "tank_id": str(tank_id)},
            )
            raise TokenAlreadyConsumedError(str(row.id))

        if row.tank_id != tank_id or row.operation_type != operation.value:
            logger.warning(
                "override_token_mismatch",
                extra={
                    "token_id": str(row.id),
                    "token_tank_id": str(row.tank_id),
                    "token_operation": row.operation_type,
                    "tank_id": str(tank_id),
                    "operation_type": operation.value,
                },
            )
            raise TokenTankMismatchError(
                token_id=str(row.id),
                expected_tank_id=str(row.tank_id),
                expected_operation=row.operation_type,
                actual_tank_id=str(tank_id),
                actual_operation=operation.value,
            )

        now = self.clock.now()
        if row.is_expired(now):
            logger.warning(
                "override_token_expired",
                extra={
                    "token_id": str(row.id),
                    "tank_id": str(tank_id),
                    "expires_at": row.expires_at,
                },
            )
            raise TokenExpiredError(str(row.id), row.expires_at.isoformat())

        row.consumed = True
        row.consumed_at = now
        self.session.flush()

        logger.warning(
            "consistency_override_used",
            extra={
                "token_id": str(row.id),
                "tank_id": str(tank_id),
                "operation_type": operation.value,
                "issued_by": row.issued_by,
                "notes": row.notes,
            },
        )
        return row
