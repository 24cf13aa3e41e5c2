"""
Pure domain layer.

Value objects and decision logic with NO dependencies on the ORM, the
database or I/O.  Time enters only through an injected Clock.
"""

from fuel_kernel.domain.adjustment import AdjustmentPlan, LotAdjustment, plan_mrn_adjustment
from fuel_kernel.domain.allocation import DrawPlan, LotDraw, plan_fifo_draw
from fuel_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from fuel_kernel.domain.consistency import classify_difference, drift_ratio
from fuel_kernel.domain.legacy_breakdown import dump_legacy_breakdown, parse_legacy_breakdown
from fuel_kernel.domain.mrn import is_sentinel, is_valid_mrn, validate_mrn
from fuel_kernel.domain.values import (
    AllocationBreakdown,
    BreakdownLine,
    ConsistencyResult,
    ConsistencyStatus,
    ConsistencySummary,
    LotRef,
    LotSnapshot,
)

__all__ = [
    "AdjustmentPlan",
    "AllocationBreakdown",
    "BreakdownLine",
    "Clock",
    "ConsistencyResult",
    "ConsistencyStatus",
    "ConsistencySummary",
    "DeterministicClock",
    "DrawPlan",
    "LotAdjustment",
    "LotDraw",
    "LotRef",
    "LotSnapshot",
    "SystemClock",
    "classify_difference",
    "drift_ratio",
    "dump_legacy_breakdown",
    "is_sentinel",
    "is_valid_mrn",
    "parse_legacy_breakdown",
    "plan_fifo_draw",
    "plan_mrn_adjustment",
    "validate_mrn",
]
