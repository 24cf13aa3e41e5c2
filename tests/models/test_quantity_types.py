"""
Exact litre quantities and UTC timestamps through the database.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from fuel_kernel.db.engine import session_scope
from fuel_kernel.db.types import to_liters
from fuel_kernel.exceptions import QuantityPrecisionError
from fuel_kernel.models.tank import FuelTank


class TestToLiters:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (Decimal("1.5"), Decimal("1.500")),
            (Decimal("1.0000"), Decimal("1.000")),
            ("12.3", Decimal("12.300")),
            (7, Decimal("7.000")),
        ],
    )
    def test_normalized_to_three_places(self, value, expected):
        result = to_liters(value)
        assert result == expected
        assert result.as_tuple().exponent == -3

    @pytest.mark.parametrize("value", [Decimal("10.0004"), Decimal("1.0005"), "0.0001"])
    def test_digits_past_millilitres_rejected(self, value):
        with pytest.raises(QuantityPrecisionError) as exc_info:
            to_liters(value)
        assert exc_info.value.places == 3

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            to_liters(0.1)

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity"])
    def test_non_numeric_rejected(self, value):
        with pytest.raises(ValueError):
            to_liters(value)


class TestRoundTrip:
    def test_decimal_exact_after_reload(self, committed_tank, session_factory):
        tank_id = committed_tank()
        with session_scope(session_factory) as s:
            s.get(FuelTank, tank_id).current_quantity = Decimal("12345.678")

        with session_scope(session_factory) as s:
            value = s.get(FuelTank, tank_id).current_quantity

        assert value == Decimal("12345.678")
        assert isinstance(value, Decimal)

    def test_timestamps_come_back_in_utc(self, committed_tank, session_factory):
        tank_id = committed_tank()
        plus_two = timezone(timedelta(hours=2))
        with session_scope(session_factory) as s:
            s.get(FuelTank, tank_id).ledger_touched_at = datetime(2024, 5, 1, 14, 0, tzinfo=plus_two)

        with session_scope(session_factory) as s:
            touched = s.get(FuelTank, tank_id).ledger_touched_at

        assert touched.utcoffset() == timedelta(0)
        assert touched == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def test_float_write_rejected(self, committed_tank, session_factory):
        tank_id = committed_tank()
        with pytest.raises(Exception) as exc_info:
            with session_scope(session_factory) as s:
                s.get(FuelTank, tank_id).current_quantity = 1.5
        assert "float" in str(exc_info.value)
