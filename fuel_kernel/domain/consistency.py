"""
Consistency classification.

    difference = physical - ledger_sum
    ratio      = |difference| / max(physical, 1)

    difference == 0         -> CONSISTENT
    0 < ratio <= minor      -> MINOR   (boundary inclusive)
    ratio > minor           -> MAJOR

Architecture position:
    Kernel > Domain -- pure, zero I/O.  The threshold comes from
    fuel_config (consistency.minor_ratio, default 0.01).
"""

from decimal import Decimal

from fuel_kernel.domain.values import ConsistencyStatus

DEFAULT_MINOR_RATIO = Decimal("0.01")
_ONE = Decimal("1")


def drift_ratio(physical: Decimal, ledger_sum: Decimal) -> Decimal:
    """|physical - ledger_sum| relative to the physical reading (floored at 1 L)."""
    return abs(physical - ledger_sum) / max(physical, _ONE)


def classify_difference(
    physical: Decimal,
    ledger_sum: Decimal,
    minor_ratio: Decimal = DEFAULT_MINOR_RATIO,
) -> ConsistencyStatus:
    if physical == ledger_sum:
        return ConsistencyStatus.CONSISTENT
    if drift_ratio(physical, ledger_sum) <= minor_ratio:
        return ConsistencyStatus.MINOR
    return ConsistencyStatus.MAJOR
