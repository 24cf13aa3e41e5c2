"""Read-only selectors."""

from fuel_kernel.selectors.consistency import ConsistencyChecker
from fuel_kernel.selectors.movement_selector import (
    CorrectionView,
    MovementSelector,
    MovementView,
)

__all__ = [
    "ConsistencyChecker",
    "CorrectionView",
    "MovementSelector",
    "MovementView",
]
