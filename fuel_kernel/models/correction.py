"""
Module: fuel_kernel.models.correction
Responsibility: ORM persistence for the append-only correction audit trail.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - CorrectionRecord rows are append-only; UPDATE and DELETE are blocked by
      ORM listeners (db/immutability.py).
    - Each row is written in the same transaction as the mutation it records.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.

Audit relevance:
    before_snapshot/after_snapshot hold the tank quantity, ledger sum,
    difference and per-lot remaining quantities either side of the action.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from fuel_kernel.db.base import Base, UUIDString


class CorrectionAction(str, Enum):
    """Supervised corrective actions for an inconsistent tank.

    Contract: CorrectionService handles every member; adding one without a
    handler is a programming error surfaced at dispatch time.
    """

    ADJUST_TANK = "adjust_tank"
    ADJUST_MRN = "adjust_mrn"
    CREATE_BALANCING_MRN = "create_balancing_mrn"


class CorrectionRecord(Base):
    """Audit row for one applied correction."""

    __tablename__ = "correction_records"

    __table_args__ = (
        Index("idx_correction_tank_time", "tank_id", "created_at"),
    )

    tank_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fuel_tanks.id", ondelete="CASCADE"),
        nullable=False,
    )

    action: Mapped[str] = mapped_column(String(30), nullable=False)

    operator_id: Mapped[str] = mapped_column(String(100), nullable=False)

    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    override_token_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("override_tokens.id"),
        nullable=True,
    )

    before_snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)

    after_snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<CorrectionRecord {self.action} tank={self.tank_id} by={self.operator_id}>"
