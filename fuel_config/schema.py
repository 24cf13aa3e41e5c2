"""
Typed configuration schema (``fuel_config.schema``).

Every section of the YAML file maps to one frozen dataclass.  Values are
validated in ``__post_init__`` so a bad file fails at load time rather than
on the first fuel operation.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class DatabaseSettings:
    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url must not be empty")


@dataclass(frozen=True)
class OverrideSettings:
    window_seconds: int = 300

    def __post_init__(self) -> None:
        if self.window_seconds <= 0:
            raise ValueError(
                f"override.window_seconds must be positive, got {self.window_seconds}"
            )


@dataclass(frozen=True)
class ConsistencySettings:
    minor_ratio: Decimal = Decimal("0.01")

    def __post_init__(self) -> None:
        if not (Decimal("0") < self.minor_ratio < Decimal("1")):
            raise ValueError(
                f"consistency.minor_ratio must be in (0, 1), got {self.minor_ratio}"
            )


@dataclass(frozen=True)
class TransactionSettings:
    max_retries: int = 3
    backoff_seconds: float = 0.1

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("transaction.max_retries must be >= 0")
        if self.backoff_seconds < 0:
            raise ValueError("transaction.backoff_seconds must be >= 0")


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"

    def __post_init__(self) -> None:
        if self.level not in _LOG_LEVELS:
            raise ValueError(f"logging.level must be one of {sorted(_LOG_LEVELS)}")


@dataclass(frozen=True)
class FuelSettings:
    """The complete, validated runtime configuration."""

    config_id: str
    version: int
    database: DatabaseSettings
    override: OverrideSettings
    consistency: ConsistencySettings
    transaction: TransactionSettings
    logging: LoggingSettings
    checksum: str = ""
