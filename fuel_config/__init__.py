"""
fuel_config -- single public entrypoint for fuel ledger configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains settings.
    It loads ``defaults.yaml`` (or the file named by ``FUEL_CONFIG_FILE``),
    applies environment overrides, validates, and returns a frozen
    ``FuelSettings``.

Architecture position:
    Configuration -- sits above ``fuel_kernel``.  The kernel MUST NEVER
    import from ``fuel_config``; ``fuel_config.bridges`` translates settings
    into kernel inputs (``LedgerPolicy``, engine arguments).

Audit relevance:
    Every call emits a ``FUEL_CONFIG_TRACE`` log entry with the config id,
    version and checksum of the effective settings.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from fuel_config.bridges import engine_kwargs, to_ledger_policy
from fuel_config.loader import apply_env_overrides, load_yaml_file, parse_settings
from fuel_config.schema import FuelSettings
from fuel_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_FILE = Path(__file__).parent / "defaults.yaml"


def get_active_config(
    config_file: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> FuelSettings:
    """The ONLY public configuration entrypoint.

    Args:
        config_file: YAML file to load. Defaults to ``FUEL_CONFIG_FILE`` from
            the environment, then the packaged defaults.yaml.
        environ: Environment mapping; defaults to ``os.environ``.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If a value is out of range.
    """
    env = os.environ if environ is None else environ
    path = config_file or Path(env.get("FUEL_CONFIG_FILE") or DEFAULT_CONFIG_FILE)

    settings = parse_settings(apply_env_overrides(load_yaml_file(path), env))

    _logger.info(
        "FUEL_CONFIG_TRACE",
        extra={
            "trace_type": "FUEL_CONFIG_TRACE",
            "config_id": settings.config_id,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "config_file": str(path),
        },
    )
    return settings


__all__ = [
    "FuelSettings",
    "engine_kwargs",
    "get_active_config",
    "to_ledger_policy",
]
