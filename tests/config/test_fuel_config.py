"""
fuel_config: YAML loading, environment overrides and the kernel bridge.
"""

from decimal import Decimal

import pytest
import yaml

from fuel_config import get_active_config
from fuel_config.bridges import engine_kwargs, to_ledger_policy
from fuel_config.loader import apply_env_overrides, compute_checksum


def write_config(tmp_path, **sections):
    base = {
        "config_id": "test-config",
        "version": 4,
        "database": {"url": "sqlite:///test.db"},
    }
    base.update(sections)
    path = tmp_path / "fuel.yaml"
    path.write_text(yaml.safe_dump(base))
    return path


class TestDefaults:
    def test_packaged_defaults_load(self):
        settings = get_active_config(environ={})

        assert settings.config_id == "fuel-ledger-defaults"
        assert settings.override.window_seconds == 300
        assert settings.consistency.minor_ratio == Decimal("0.01")
        assert settings.transaction.max_retries == 3
        assert settings.database.url.startswith("sqlite:///")
        assert len(settings.checksum) == 64

    def test_config_trace_logged(self, captured_logs):
        settings = get_active_config(environ={})

        (record,) = [r for r in captured_logs() if r["message"] == "FUEL_CONFIG_TRACE"]
        assert record["config_id"] == settings.config_id
        assert record["checksum"] == settings.checksum


class TestFileSelection:
    def test_explicit_file(self, tmp_path):
        path = write_config(tmp_path, override={"window_seconds": 120})

        settings = get_active_config(config_file=path, environ={})

        assert settings.config_id == "test-config"
        assert settings.version == 4
        assert settings.override.window_seconds == 120

    def test_file_from_environment(self, tmp_path):
        path = write_config(tmp_path)

        settings = get_active_config(environ={"FUEL_CONFIG_FILE": str(path)})

        assert settings.config_id == "test-config"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(config_file=tmp_path / "absent.yaml", environ={})


class TestEnvironmentOverrides:
    def test_database_url_override(self):
        settings = get_active_config(environ={"FUEL_DATABASE_URL": "postgresql://fuel@db/ledger"})
        assert settings.database.url == "postgresql://fuel@db/ledger"

    def test_fuel_specific_url_wins_over_generic(self):
        env = {
            "FUEL_DATABASE_URL": "postgresql://fuel@db/primary",
            "DATABASE_URL": "postgresql://fuel@db/generic",
        }
        assert get_active_config(environ=env).database.url == "postgresql://fuel@db/primary"

    def test_window_and_log_level_override(self):
        settings = get_active_config(
            environ={"FUEL_OVERRIDE_WINDOW_SECONDS": "60", "FUEL_LOG_LEVEL": "debug"}
        )
        assert settings.override.window_seconds == 60
        assert settings.logging.level == "DEBUG"

    def test_overrides_do_not_mutate_input(self):
        data = {"database": {"url": "sqlite:///a.db"}}
        merged = apply_env_overrides(data, {"DATABASE_URL": "sqlite:///b.db"})

        assert data["database"]["url"] == "sqlite:///a.db"
        assert merged["database"]["url"] == "sqlite:///b.db"


class TestValidation:
    @pytest.mark.parametrize(
        "sections",
        [
            {"override": {"window_seconds": 0}},
            {"consistency": {"minor_ratio": "1.5"}},
            {"consistency": {"minor_ratio": "abc"}},
            {"transaction": {"max_retries": -1}},
            {"logging": {"level": "LOUD"}},
        ],
    )
    def test_out_of_range_rejected(self, tmp_path, sections):
        path = write_config(tmp_path, **sections)
        with pytest.raises(ValueError):
            get_active_config(config_file=path, environ={})

    def test_checksum_is_deterministic(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})


class TestBridges:
    def test_ledger_policy_from_settings(self, tmp_path):
        path = write_config(
            tmp_path,
            override={"window_seconds": 90},
            consistency={"minor_ratio": "0.02"},
            transaction={"max_retries": 5, "backoff_seconds": 0.5},
        )

        policy = to_ledger_policy(get_active_config(config_file=path, environ={}))

        assert policy.override_window_seconds == 90
        assert policy.minor_ratio == Decimal("0.02")
        assert policy.max_retries == 5
        assert policy.retry_backoff_seconds == 0.5

    def test_engine_kwargs(self):
        kwargs = engine_kwargs(get_active_config(environ={"DATABASE_URL": "sqlite:///x.db"}))
        assert kwargs["database_url"] == "sqlite:///x.db"
        assert set(kwargs) == {"database_url", "echo", "pool_size", "max_overflow"}
