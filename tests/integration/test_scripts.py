"""
Operator scripts: schema creation and the consistency report.
"""

import importlib.util
import json
from decimal import Decimal
from pathlib import Path

import pytest

from fuel_kernel.db.engine import init_engine_from_url, reset_engine, session_scope
from fuel_kernel.models.tank import FuelTank

SCRIPTS = Path(__file__).resolve().parents[2] / "scripts"


def load_script(name: str):
    module_spec = importlib.util.spec_from_file_location(name, SCRIPTS / f"{name}.py")
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


@pytest.fixture
def db_url(tmp_path, monkeypatch):
    monkeypatch.delenv("FUEL_CONFIG_FILE", raising=False)
    url = f"sqlite:///{tmp_path / 'report.db'}"
    assert load_script("init_db").main(["--database-url", url]) == 0
    yield url
    reset_engine()


def add_tank(url: str, identifier: str, physical: str) -> None:
    init_engine_from_url(url)
    try:
        with session_scope() as s:
            s.add(
                FuelTank(
                    identifier=identifier,
                    name=f"Tank {identifier}",
                    capacity=Decimal("1000"),
                    current_quantity=Decimal(physical),
                )
            )
    finally:
        reset_engine()


def test_report_on_consistent_fleet(db_url, capsys):
    add_tank(db_url, "TK-1", "0")
    capsys.readouterr()

    status = load_script("consistency_report").main(["--database-url", db_url])

    assert status == 0
    out = capsys.readouterr().out
    assert "Tank TK-1" in out
    assert "1 tanks: 1 consistent, 0 minor, 0 major" in out


def test_report_flags_drift_as_json(db_url, capsys):
    add_tank(db_url, "TK-1", "0")
    add_tank(db_url, "TK-2", "25")
    capsys.readouterr()

    status = load_script("consistency_report").main(["--database-url", db_url, "--json"])

    assert status == 1
    report = json.loads(capsys.readouterr().out)
    assert report["total"] == 2
    assert report["major"] == 1
    drifted = [t for t in report["tanks"] if t["status"] == "major"]
    assert drifted[0]["tank_name"] == "Tank TK-2"
    assert drifted[0]["difference"] == "25.000"
