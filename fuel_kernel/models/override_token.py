"""
Module: fuel_kernel.models.override_token
Responsibility: ORM persistence for short-lived, single-use override tokens
    that let a guarded operation proceed on an inconsistent tank.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - token is unique.
    - consumed flips False -> True exactly once, in the same transaction as
      the operation it authorizes (OverrideTokenService locks the row).

Audit relevance:
    Every bypass of the consistency gate is traceable to a token, its issuer,
    its notes, and the moment it was consumed.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from fuel_kernel.db.base import Base, UUIDString


class OverrideOperation(str, Enum):
    """Operation classes an override token may authorize."""

    CORRECTION = "correction"
    FUELING = "fueling"
    TRANSFER = "transfer"
    DRAIN = "drain"


class OverrideToken(Base):
    """Single-use authorization for one operation class on one tank."""

    __tablename__ = "override_tokens"

    __table_args__ = (
        Index("idx_override_token_token", "token", unique=True),
        Index("idx_override_token_tank", "tank_id", "operation_type"),
    )

    token: Mapped[str] = mapped_column(String(64), nullable=False)

    tank_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fuel_tanks.id", ondelete="CASCADE"),
        nullable=False,
    )

    operation_type: Mapped[str] = mapped_column(String(20), nullable=False)

    issued_at: Mapped[datetime] = mapped_column(nullable=False)

    expires_at: Mapped[datetime] = mapped_column(nullable=False)

    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    issued_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    consumed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    consumed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def __repr__(self) -> str:
        state = "consumed" if self.consumed else "open"
        return f"<OverrideToken {self.id} {self.operation_type} tank={self.tank_id} {state}>"
