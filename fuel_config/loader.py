"""
Configuration Loader (``fuel_config.loader``).

Responsibility
--------------
Loads the YAML settings file, applies environment overrides, and parses
the result into the frozen ``fuel_config.schema`` dataclasses.  Runtime
callers go through ``fuel_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Out-of-range values  -> ``ValueError`` from the schema dataclasses.
"""

from __future__ import annotations

import copy
import hashlib
import json
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from fuel_config.schema import (
    ConsistencySettings,
    DatabaseSettings,
    FuelSettings,
    LoggingSettings,
    OverrideSettings,
    TransactionSettings,
)

# Environment variable -> (section, key). First match wins per key.
ENV_OVERRIDES: tuple[tuple[str, str, str], ...] = (
    ("FUEL_DATABASE_URL", "database", "url"),
    ("DATABASE_URL", "database", "url"),
    ("FUEL_OVERRIDE_WINDOW_SECONDS", "override", "window_seconds"),
    ("FUEL_LOG_LEVEL", "logging", "level"),
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def apply_env_overrides(
    data: dict[str, Any],
    environ: Mapping[str, str],
) -> dict[str, Any]:
    """Return a copy of ``data`` with environment overrides applied."""
    merged = copy.deepcopy(data)
    applied: set[tuple[str, str]] = set()
    for env_name, section, key in ENV_OVERRIDES:
        value = environ.get(env_name)
        if not value or (section, key) in applied:
            continue
        merged.setdefault(section, {})[key] = value
        applied.add((section, key))
    return merged


def _parse_decimal(value: Any, field: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field} is not a decimal: {value!r}") from exc


def parse_settings(data: dict[str, Any]) -> FuelSettings:
    """Parse a raw settings dict into FuelSettings."""
    db = data.get("database", {})
    override = data.get("override", {})
    consistency = data.get("consistency", {})
    transaction = data.get("transaction", {})
    log = data.get("logging", {})

    return FuelSettings(
        config_id=str(data.get("config_id", "fuel-ledger")),
        version=int(data.get("version", 1)),
        database=DatabaseSettings(
            url=str(db["url"]),
            echo=bool(db.get("echo", False)),
            pool_size=int(db.get("pool_size", 20)),
            max_overflow=int(db.get("max_overflow", 10)),
        ),
        override=OverrideSettings(
            window_seconds=int(override.get("window_seconds", 300)),
        ),
        consistency=ConsistencySettings(
            minor_ratio=_parse_decimal(
                consistency.get("minor_ratio", "0.01"), "consistency.minor_ratio"
            ),
        ),
        transaction=TransactionSettings(
            max_retries=int(transaction.get("max_retries", 3)),
            backoff_seconds=float(transaction.get("backoff_seconds", 0.1)),
        ),
        logging=LoggingSettings(level=str(log.get("level", "INFO")).upper()),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
