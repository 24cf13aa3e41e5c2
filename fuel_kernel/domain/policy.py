"""
LedgerPolicy -- tunable constants for the ledger services.

The kernel never reads configuration itself; fuel_config builds a
LedgerPolicy (see fuel_config.bridges) and callers pass it in.
"""

from dataclasses import dataclass
from decimal import Decimal

from fuel_kernel.domain.consistency import DEFAULT_MINOR_RATIO


@dataclass(frozen=True, slots=True)
class LedgerPolicy:
    override_window_seconds: int = 300
    minor_ratio: Decimal = DEFAULT_MINOR_RATIO
    max_retries: int = 3
    retry_backoff_seconds: float = 0.1

    def __post_init__(self) -> None:
        if self.override_window_seconds <= 0:
            raise ValueError("override_window_seconds must be positive")
        if not (Decimal("0") < self.minor_ratio < Decimal("1")):
            raise ValueError("minor_ratio must be between 0 and 1")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")


DEFAULT_POLICY = LedgerPolicy()
