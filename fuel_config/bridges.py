"""Translate FuelSettings into kernel inputs.

The kernel never imports fuel_config; these helpers are the one-way bridge.
"""

from fuel_config.schema import FuelSettings
from fuel_kernel.domain.policy import LedgerPolicy


def to_ledger_policy(settings: FuelSettings) -> LedgerPolicy:
    return LedgerPolicy(
        override_window_seconds=settings.override.window_seconds,
        minor_ratio=settings.consistency.minor_ratio,
        max_retries=settings.transaction.max_retries,
        retry_backoff_seconds=settings.transaction.backoff_seconds,
    )


def engine_kwargs(settings: FuelSettings) -> dict:
    """Keyword arguments for fuel_kernel.db.engine.init_engine_from_url."""
    return {
        "database_url": settings.database.url,
        "echo": settings.database.echo,
        "pool_size": settings.database.pool_size,
        "max_overflow": settings.database.max_overflow,
    }
