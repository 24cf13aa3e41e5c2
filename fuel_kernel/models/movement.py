"""
Module: fuel_kernel.models.movement
Responsibility: ORM persistence for fuel movements and their per-MRN
    allocation lines (the allocation breakdown).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Movements and allocation lines are append-only (ORM listeners in
      db/immutability.py).
    - The allocation lines of an outgoing movement sum exactly to its
      quantity.

Audit relevance:
    Allocation lines are the customs trail: for every litre that left a tank
    they name the MRN it was drawn from.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fuel_kernel.db.base import Base, UUIDString


class MovementType(str, Enum):
    """Kinds of fuel movement recorded against a tank."""

    INTAKE = "intake"
    FUELING = "fueling"
    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"
    TANKER_TRANSFER = "tanker_transfer"
    DRAIN = "drain"
    LEGACY = "legacy"


class FuelMovement(Base):
    """
    One quantity entering or leaving a tank.

    Guarantees:
        - Immutable after insert.
        - Outgoing movements own their allocation lines, ordered by position.
    """

    __tablename__ = "fuel_movements"

    __table_args__ = (
        Index("idx_fuel_movement_tank_time", "tank_id", "occurred_at"),
        Index("idx_fuel_movement_reference", "reference"),
    )

    tank_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fuel_tanks.id", ondelete="CASCADE"),
        nullable=False,
    )

    movement_type: Mapped[str] = mapped_column(String(20), nullable=False)

    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    # Caller's reference (fueling ticket, transfer id, intake document)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    counterpart_tank_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("fuel_tanks.id"),
        nullable=True,
    )

    operator_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    # Ingested legacy breakdown blob, kept verbatim
    legacy_breakdown: Mapped[list | None] = mapped_column(JSON, nullable=True)

    lines: Mapped[list["AllocationLine"]] = relationship(
        back_populates="movement",
        order_by="AllocationLine.position",
    )

    def __repr__(self) -> str:
        return f"<FuelMovement {self.movement_type} {self.quantity} L tank={self.tank_id}>"


class AllocationLine(Base):
    """
    One (mrn, quantity) pair of an allocation breakdown.

    lot_id is null only for lines ingested from a legacy breakdown whose MRN
    has no lot in the tank.
    """

    __tablename__ = "allocation_lines"

    __table_args__ = (
        Index("idx_allocation_line_movement", "movement_id", "position"),
        Index("idx_allocation_line_lot", "lot_id"),
    )

    movement_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fuel_movements.id", ondelete="CASCADE"),
        nullable=False,
    )

    lot_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("mrn_lots.id"),
        nullable=True,
    )

    mrn: Mapped[str] = mapped_column(String(64), nullable=False)

    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    position: Mapped[int] = mapped_column(BigInteger, nullable=False)

    movement: Mapped[FuelMovement] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<AllocationLine {self.mrn}: {self.quantity} L>"
