"""
Module: fuel_kernel.models.tank
Responsibility: ORM persistence for fixed fuel storage tanks.  The tank row
    carries the physical quantity reading and is the lock target for every
    ledger mutation against the tank.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - current_quantity >= 0 (enforced by the allocation and correction
      services before flush).
    - version is a SQLAlchemy version counter: a stale concurrent write
      raises StaleDataError instead of silently overwriting.
    - next_lot_sequence is the per-tank insertion counter that breaks
      ties between lots with equal intake timestamps.

Failure modes:
    - StaleDataError on concurrent modification without a row lock.

Audit relevance:
    The tank's physical quantity is half of every consistency check; the
    other half is the sum of its MRN lots.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import BigInteger, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from fuel_kernel.db.base import Base
from fuel_kernel.db.types import ZERO


class TankStatus(str, Enum):
    """Operational status of a tank."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class FuelTank(Base):
    """
    A fixed storage tank holding one fuel type.

    Contract:
        current_quantity is the physical reading in litres.  It changes only
        through LotLedgerService, AllocationService and CorrectionService,
        always in the same transaction as the matching lot mutation.

    Guarantees:
        - Every flush that changes the row bumps version.
        - capacity is advisory: exceeding it is reported, never clamped.
    """

    __tablename__ = "fuel_tanks"

    __table_args__ = (
        Index("idx_fuel_tank_identifier", "identifier", unique=True),
        Index("idx_fuel_tank_status", "status"),
    )

    identifier: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    fuel_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="JET-A1",
    )

    location: Mapped[str | None] = mapped_column(String(200), nullable=True)

    capacity: Mapped[Decimal] = mapped_column(nullable=False)

    # Physical reading, litres
    current_quantity: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=ZERO,
    )

    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=TankStatus.ACTIVE.value,
    )

    # Tie-break counter for lots with equal intake timestamps
    next_lot_sequence: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=1,
    )

    # Last ledger mutation; bumped by every add/allocate/correct
    ledger_touched_at: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=1,
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_active(self) -> bool:
        return self.status == TankStatus.ACTIVE.value

    def __repr__(self) -> str:
        return (
            f"<FuelTank {self.identifier}: {self.current_quantity}/"
            f"{self.capacity} L v{self.version}>"
        )
