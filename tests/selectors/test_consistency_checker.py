"""
ConsistencyChecker: physical reading vs. sum of MRN lot remaining.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from fuel_kernel.domain.values import ConsistencyStatus
from fuel_kernel.exceptions import TankNotFoundError
from fuel_kernel.models.tank import TankStatus
from fuel_kernel.selectors.consistency import ConsistencyChecker
from tests.support import MRN_A, MRN_B


@pytest.fixture
def checker(session, clock):
    return ConsistencyChecker(session, clock)


@pytest.fixture
def thousand_litres(session, ledger, tank):
    """Tank with 990 L of lots; physical reading set per test."""
    ledger.add_lot(tank.id, MRN_A, Decimal("600"))
    ledger.add_lot(tank.id, MRN_B, Decimal("390"))

    def _physical(value: str):
        tank.current_quantity = Decimal(value)
        session.flush()
        return tank

    return _physical


class TestCheck:
    def test_matching_tank_is_consistent(self, checker, thousand_litres, clock):
        tank = thousand_litres("990")

        result = checker.check(tank.id)

        assert result.status is ConsistencyStatus.CONSISTENT
        assert result.difference == Decimal("0")
        assert result.ledger_quantity == Decimal("990")
        assert result.lot_count == 2
        assert result.checked_at == clock.now()
        assert result.tank_name == tank.name

    def test_one_percent_boundary_is_minor(self, checker, thousand_litres):
        result = checker.check(thousand_litres("1000").id)

        assert result.difference == Decimal("10")
        assert result.status is ConsistencyStatus.MINOR

    def test_just_past_boundary_is_major(self, checker, session, ledger, thousand_litres):
        tank = thousand_litres("1000")
        lot = ledger.load_lots(tank.id)[1]
        lot.remaining_quantity = Decimal("389")
        session.flush()

        result = checker.check(tank.id)

        assert result.difference == Decimal("11")
        assert result.status is ConsistencyStatus.MAJOR

    def test_ledger_above_physical_is_negative_difference(self, checker, thousand_litres):
        result = checker.check(thousand_litres("900").id)

        assert result.difference == Decimal("-90")
        assert result.status is ConsistencyStatus.MAJOR

    def test_tank_without_lots(self, checker, make_tank):
        empty = make_tank("TK-EMPTY")

        result = checker.check(empty.id)

        assert result.is_consistent
        assert result.lot_count == 0
        assert result.ledger_quantity == Decimal("0")

    def test_over_capacity_flagged(self, checker, session, make_tank):
        small = make_tank("TK-SMALL", capacity=Decimal("10"))
        small.current_quantity = Decimal("12")
        session.flush()

        assert checker.check(small.id).over_capacity

    def test_unknown_tank(self, checker):
        with pytest.raises(TankNotFoundError):
            checker.check(uuid4())

    def test_check_does_not_mutate(self, checker, session, thousand_litres):
        tank = thousand_litres("1000")
        checker.check(tank.id)
        assert not session.dirty

    def test_inconsistent_result_logged_as_warning(self, checker, thousand_litres, captured_logs):
        checker.check(thousand_litres("1000").id)

        (record,) = [r for r in captured_logs() if r["message"] == "tank_inconsistent"]
        assert record["level"] == "WARNING"
        assert record["status"] == "minor"
        assert record["difference"] == "10.000"


class TestCheckAll:
    def test_results_ordered_by_identifier_and_summarized(
        self, checker, session, make_tank, ledger
    ):
        b = make_tank("TK-B")
        a = make_tank("TK-A")
        c = make_tank("TK-C")
        ledger.add_lot(a.id, MRN_A, Decimal("100"))
        ledger.add_lot(b.id, MRN_A, Decimal("100"))
        b.current_quantity = Decimal("99.5")
        ledger.add_lot(c.id, MRN_A, Decimal("100"))
        c.current_quantity = Decimal("50")
        session.flush()

        results = checker.check_all()

        assert [r.tank_id for r in results] == [a.id, b.id, c.id]
        assert [r.status for r in results] == [
            ConsistencyStatus.CONSISTENT,
            ConsistencyStatus.MINOR,
            ConsistencyStatus.MAJOR,
        ]

        summary = checker.summarize()
        assert (summary.total, summary.consistent, summary.minor, summary.major) == (3, 1, 1, 1)
        assert summary.inconsistent == 2

    def test_inactive_tanks_skipped(self, checker, session, make_tank):
        active = make_tank("TK-ON")
        retired = make_tank("TK-OFF")
        retired.status = TankStatus.INACTIVE.value
        session.flush()

        assert [r.tank_id for r in checker.check_all()] == [active.id]

    def test_result_serializes(self, checker, thousand_litres):
        payload = checker.check(thousand_litres("1000").id).to_dict()

        assert payload["status"] == "minor"
        assert payload["difference"] == "10.000"
        assert payload["lot_count"] == 2
