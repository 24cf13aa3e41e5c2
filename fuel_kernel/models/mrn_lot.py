"""
Module: fuel_kernel.models.mrn_lot
Responsibility: ORM persistence for MRN lots -- the per-tank ledger of fuel
    quantities keyed by customs Movement Reference Number.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - 0 <= remaining_quantity <= original_quantity for every lot (enforced by
      the ledger, allocation and correction services).
    - (tank_id, mrn) is unique: one lot per MRN per tank.
    - Lots are never deleted; exhausted lots stay at zero remaining.
    - Ledger order is (intake_at, sequence) ascending.

Failure modes:
    - IntegrityError on a duplicate (tank_id, mrn) pair inserted outside
      LotLedgerService (which tops up the existing lot instead).

Audit relevance:
    The sum of remaining_quantity over a tank's lots is the ledger side of
    every consistency check.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fuel_kernel.db.base import Base, UUIDString


class MrnLot(Base):
    """
    Remaining fuel from one MRN inside one tank.

    Contract:
        original_quantity only grows (intake top-up, balancing);
        remaining_quantity moves within [0, original_quantity].

    Guarantees:
        - is_system_generated is True only for balancing and untracked
          intake sentinels.
    """

    __tablename__ = "mrn_lots"

    __table_args__ = (
        UniqueConstraint("tank_id", "mrn", name="uq_mrn_lot_tank_mrn"),
        # Query: FIFO ledger order for a tank
        Index("idx_mrn_lot_tank_order", "tank_id", "intake_at", "sequence"),
        Index("idx_mrn_lot_mrn", "mrn"),
    )

    tank_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fuel_tanks.id", ondelete="CASCADE"),
        nullable=False,
    )

    mrn: Mapped[str] = mapped_column(String(64), nullable=False)

    original_quantity: Mapped[Decimal] = mapped_column(nullable=False)

    remaining_quantity: Mapped[Decimal] = mapped_column(nullable=False)

    intake_at: Mapped[datetime] = mapped_column(nullable=False)

    # Insertion order within the tank; breaks intake_at ties
    sequence: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Intake transaction that created the lot
    origin_reference: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    is_system_generated: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<MrnLot {self.mrn}: {self.remaining_quantity}/"
            f"{self.original_quantity} L seq={self.sequence}>"
        )
