"""
ORM-Level Immutability Enforcement.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
Listeners registered here intercept those events for append-only tables:

    session.flush()
         |
         v
    [before_update event] --> _reject_update() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _reject_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

A failed check aborts the flush; the enclosing transaction rolls back.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | When Immutable          | Why
------------------|-------------------------|-----------------------------------
CorrectionRecord  | ALWAYS (from creation)  | Correction audit trail
FuelMovement      | ALWAYS (from creation)  | Movement history
AllocationLine    | ALWAYS (from creation)  | Customs MRN trail of each draw
MrnLot            | DELETE only             | Lots are kept at zero remaining

Usage:
    register_immutability_listeners()    # Called once at startup
    unregister_immutability_listeners()  # Tests that need raw fixtures
"""

from sqlalchemy import event

from fuel_kernel.exceptions import ImmutabilityViolationError
from fuel_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_APPEND_ONLY_REASONS = {
    "CorrectionRecord": "Correction records are append-only",
    "FuelMovement": "Fuel movements are append-only",
    "AllocationLine": "Allocation lines are fixed once the movement is recorded",
}


def _blocked(target, operation: str, reason: str) -> ImmutabilityViolationError:
    entity_type = type(target).__name__
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _reject_update(mapper, connection, target):
    """Block any UPDATE of an append-only row."""
    reason = _APPEND_ONLY_REASONS[type(target).__name__]
    raise _blocked(target, "UPDATE", f"{reason} and cannot be modified")


def _reject_delete(mapper, connection, target):
    """Block any DELETE of an append-only row."""
    reason = _APPEND_ONLY_REASONS[type(target).__name__]
    raise _blocked(target, "DELETE", f"{reason} and cannot be deleted")


def _reject_lot_delete(mapper, connection, target):
    """MRN lots stay in the ledger for audit, even when exhausted."""
    raise _blocked(target, "DELETE", "MRN lots are retained for audit and cannot be deleted")


def _listener_table():
    from fuel_kernel.models.correction import CorrectionRecord
    from fuel_kernel.models.movement import AllocationLine, FuelMovement
    from fuel_kernel.models.mrn_lot import MrnLot

    return (
        (CorrectionRecord, "before_update", _reject_update),
        (CorrectionRecord, "before_delete", _reject_delete),
        (FuelMovement, "before_update", _reject_update),
        (FuelMovement, "before_delete", _reject_delete),
        (AllocationLine, "before_update", _reject_update),
        (AllocationLine, "before_delete", _reject_delete),
        (MrnLot, "before_delete", _reject_lot_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent; call after models are imported and before any writes.
    """
    for target, event_name, fn in _listener_table():
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """Remove immutability enforcement event listeners."""
    for target, event_name, fn in _listener_table():
        _safe_remove_listener(target, event_name, fn)
