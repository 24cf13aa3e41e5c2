"""ORM models for the fuel kernel."""

from fuel_kernel.models.correction import CorrectionAction, CorrectionRecord
from fuel_kernel.models.movement import AllocationLine, FuelMovement, MovementType
from fuel_kernel.models.mrn_lot import MrnLot
from fuel_kernel.models.override_token import OverrideOperation, OverrideToken
from fuel_kernel.models.tank import FuelTank, TankStatus

__all__ = [
    "AllocationLine",
    "CorrectionAction",
    "CorrectionRecord",
    "FuelMovement",
    "FuelTank",
    "MovementType",
    "MrnLot",
    "OverrideOperation",
    "OverrideToken",
    "TankStatus",
]
