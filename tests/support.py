"""
Shared test data and helpers for the fuel kernel test suite.

Helpers here open their own short transactions through session_scope(), so
they are for tests that drive FuelOperationService (one transaction per
call), never for tests holding the ``session`` fixture open.
"""

from decimal import Decimal
from uuid import UUID

from fuel_kernel.db.engine import session_scope
from fuel_kernel.domain.values import LotSnapshot
from fuel_kernel.models.tank import FuelTank
from fuel_kernel.services.lot_ledger import LotLedgerService

# Valid customs MRNs: 2 letters, 6 digits, 9 alphanumerics
MRN_A = "BA24010112345678A"
MRN_B = "BA24010212345678B"
MRN_C = "BA24010312345678C"
MRN_D = "HR24010412345678D"

TEST_OPERATOR = "operator-1"
SUPERVISOR = "supervisor-1"


def D(value: str) -> Decimal:
    return Decimal(value)


def set_physical(session_factory, tank_id: UUID, quantity: Decimal) -> None:
    """Overwrite a tank's physical reading, simulating a dip measurement."""
    with session_scope(session_factory) as s:
        s.get(FuelTank, tank_id).current_quantity = quantity


def tank_quantity(session_factory, tank_id: UUID) -> Decimal:
    with session_scope(session_factory) as s:
        return s.get(FuelTank, tank_id).current_quantity


def lots_of(session_factory, tank_id: UUID) -> tuple[LotSnapshot, ...]:
    with session_scope(session_factory) as s:
        return LotLedgerService(s).list_lots(tank_id)


def remaining_by_mrn(session_factory, tank_id: UUID) -> dict[str, Decimal]:
    return {lot.mrn: lot.remaining_quantity for lot in lots_of(session_factory, tank_id)}
