"""
Value objects for the fuel ledger.

Responsibility:
    Immutable snapshots handed across the service boundary: lots, lot
    references, allocation breakdowns and consistency results.  Services
    build these from ORM rows; callers never receive live ORM objects.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


@dataclass(frozen=True, slots=True)
class LotSnapshot:
    """Point-in-time view of one MRN lot."""

    lot_id: UUID
    tank_id: UUID
    mrn: str
    original_quantity: Decimal
    remaining_quantity: Decimal
    intake_at: datetime
    sequence: int
    origin_reference: str | None = None
    is_system_generated: bool = False

    @property
    def ledger_key(self) -> tuple[datetime, int]:
        """Sort key giving ledger (FIFO) order."""
        return (self.intake_at, self.sequence)

    @property
    def headroom(self) -> Decimal:
        """Quantity the lot can take back before reaching its original size."""
        return self.original_quantity - self.remaining_quantity


@dataclass(frozen=True, slots=True)
class LotRef:
    """Result of LotLedgerService.add_lot."""

    lot_id: UUID
    tank_id: UUID
    mrn: str
    quantity_added: Decimal
    remaining_quantity: Decimal
    sequence: int
    topped_up: bool = False


@dataclass(frozen=True, slots=True)
class BreakdownLine:
    """One (mrn, quantity) pair of an allocation breakdown."""

    mrn: str
    quantity: Decimal
    lot_id: UUID | None = None

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError(f"Breakdown quantity must be positive, got {self.quantity}")


@dataclass(frozen=True, slots=True)
class AllocationBreakdown:
    """
    Per-MRN sourcing of one outgoing movement.

    Guarantees:
        - sum(line.quantity) == total exactly.
        - lines are in draw order (oldest lot first).
    """

    tank_id: UUID
    total: Decimal
    lines: tuple[BreakdownLine, ...]
    movement_id: UUID | None = None
    movement_reference: str | None = None

    def __post_init__(self) -> None:
        drawn = sum((line.quantity for line in self.lines), Decimal("0"))
        if drawn != self.total:
            raise ValueError(
                f"Breakdown lines sum to {drawn}, expected {self.total}"
            )

    @property
    def mrns(self) -> tuple[str, ...]:
        return tuple(line.mrn for line in self.lines)

    def as_pairs(self) -> list[tuple[str, Decimal]]:
        return [(line.mrn, line.quantity) for line in self.lines]


class ConsistencyStatus(str, Enum):
    """Classification of a tank's physical/ledger difference."""

    CONSISTENT = "consistent"
    MINOR = "minor"
    MAJOR = "major"


@dataclass(frozen=True, slots=True)
class ConsistencyResult:
    """Outcome of comparing a tank's physical reading with its lot sum."""

    tank_id: UUID
    tank_name: str
    physical_quantity: Decimal
    ledger_quantity: Decimal
    difference: Decimal
    status: ConsistencyStatus
    checked_at: datetime
    lot_count: int = 0
    over_capacity: bool = False

    @property
    def is_consistent(self) -> bool:
        return self.status is ConsistencyStatus.CONSISTENT

    def to_dict(self) -> dict[str, str | int | bool]:
        return {
            "tank_id": str(self.tank_id),
            "tank_name": self.tank_name,
            "physical_quantity": str(self.physical_quantity),
            "ledger_quantity": str(self.ledger_quantity),
            "difference": str(self.difference),
            "status": self.status.value,
            "checked_at": self.checked_at.isoformat(),
            "lot_count": self.lot_count,
            "over_capacity": self.over_capacity,
        }


@dataclass(frozen=True, slots=True)
class ConsistencySummary:
    """Roll-up of a check_all() run."""

    results: tuple[ConsistencyResult, ...]
    consistent: int
    minor: int
    major: int

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def inconsistent(self) -> int:
        return self.minor + self.major

    @classmethod
    def of(cls, results: tuple[ConsistencyResult, ...]) -> ConsistencySummary:
        counts = {status: 0 for status in ConsistencyStatus}
        for result in results:
            counts[result.status] += 1
        return cls(
            results=tuple(results),
            consistent=counts[ConsistencyStatus.CONSISTENT],
            minor=counts[ConsistencyStatus.MINOR],
            major=counts[ConsistencyStatus.MAJOR],
        )
