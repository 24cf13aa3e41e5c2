"""
Pure FIFO draw planning over lot snapshots.

Verifies oldest-first ordering, the (intake_at, sequence) tie-break, exact
sums, and that uncovered demand is reported rather than silently dropped.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from fuel_kernel.domain.allocation import ledger_order, plan_fifo_draw
from fuel_kernel.domain.values import LotSnapshot
from fuel_kernel.exceptions import NonPositiveQuantityError

T0 = datetime(2024, 1, 1, 8, 0, tzinfo=UTC)
TANK = uuid4()


def lot(mrn: str, remaining: str, *, minutes: int = 0, sequence: int = 1, original: str | None = None):
    return LotSnapshot(
        lot_id=uuid4(),
        tank_id=TANK,
        mrn=mrn,
        original_quantity=Decimal(original or remaining),
        remaining_quantity=Decimal(remaining),
        intake_at=T0 + timedelta(minutes=minutes),
        sequence=sequence,
    )


class TestFifoOrder:
    def test_draws_oldest_first_and_leaves_remainder(self):
        lots = [lot("L1", "100", minutes=0, sequence=1), lot("L2", "50", minutes=10, sequence=2)]

        plan = plan_fifo_draw(lots, Decimal("120"))

        assert plan.is_covered
        assert [(d.mrn, d.quantity) for d in plan.draws] == [
            ("L1", Decimal("100")),
            ("L2", Decimal("20")),
        ]
        assert plan.draws[1].remaining_after == Decimal("30")

    def test_input_order_does_not_matter(self):
        older = lot("OLD", "10", minutes=0, sequence=1)
        newer = lot("NEW", "10", minutes=5, sequence=2)

        plan = plan_fifo_draw([newer, older], Decimal("5"))

        assert [d.mrn for d in plan.draws] == ["OLD"]

    def test_same_timestamp_breaks_tie_by_sequence(self):
        second = lot("SECOND", "10", minutes=0, sequence=2)
        first = lot("FIRST", "10", minutes=0, sequence=1)

        assert [s.mrn for s in ledger_order([second, first])] == ["FIRST", "SECOND"]
        plan = plan_fifo_draw([second, first], Decimal("12"))
        assert [(d.mrn, d.quantity) for d in plan.draws] == [
            ("FIRST", Decimal("10")),
            ("SECOND", Decimal("2")),
        ]

    def test_exhausted_lots_are_skipped(self):
        lots = [
            lot("EMPTY", "0", minutes=0, sequence=1, original="40"),
            lot("LIVE", "40", minutes=1, sequence=2),
        ]

        plan = plan_fifo_draw(lots, Decimal("15"))

        assert [d.mrn for d in plan.draws] == ["LIVE"]


class TestCoverage:
    def test_uncovered_amount_is_reported(self):
        lots = [lot("L1", "30", sequence=1), lot("L2", "20", minutes=1, sequence=2)]

        plan = plan_fifo_draw(lots, Decimal("80"))

        assert not plan.is_covered
        assert plan.drawn == Decimal("50")
        assert plan.uncovered == Decimal("30")

    def test_no_lots_leaves_everything_uncovered(self):
        plan = plan_fifo_draw([], Decimal("5"))
        assert plan.uncovered == Decimal("5")
        assert plan.draws == ()

    @pytest.mark.parametrize("requested", ["0", "-1", "-0.001"])
    def test_non_positive_request_rejected(self, requested):
        with pytest.raises(NonPositiveQuantityError) as exc_info:
            plan_fifo_draw([lot("L1", "10")], Decimal(requested))
        assert exc_info.value.field == "requested_quantity"


class TestBreakdownLines:
    def test_lines_carry_lot_ids(self):
        first = lot("L1", "10", sequence=1)
        plan = plan_fifo_draw([first], Decimal("4"))

        (line,) = plan.breakdown_lines()
        assert line.lot_id == first.lot_id
        assert line.quantity == Decimal("4")


quantities = st.decimals(
    min_value=Decimal("0.001"),
    max_value=Decimal("10000"),
    places=3,
    allow_nan=False,
    allow_infinity=False,
)


class TestFifoProperties:
    @given(sizes=st.lists(quantities, min_size=1, max_size=8), data=st.data())
    @settings(max_examples=200, deadline=None)
    def test_covered_draw_sums_exactly_and_never_overdraws(self, sizes, data):
        lots = [lot(f"L{i}", str(q), minutes=i, sequence=i + 1) for i, q in enumerate(sizes)]
        total = sum(sizes, Decimal("0"))
        requested = data.draw(
            st.decimals(min_value=Decimal("0.001"), max_value=total, places=3)
        )

        plan = plan_fifo_draw(lots, requested)

        assert plan.is_covered
        assert plan.drawn == requested
        for draw in plan.draws:
            assert draw.quantity > 0
            assert draw.remaining_after >= 0

        # Every lot drawn before the last one is fully exhausted
        for draw in plan.draws[:-1]:
            assert draw.remaining_after == 0

    @given(sizes=st.lists(quantities, min_size=0, max_size=6), extra=quantities)
    @settings(max_examples=100, deadline=None)
    def test_overdraw_reports_exact_shortfall(self, sizes, extra):
        lots = [lot(f"L{i}", str(q), minutes=i, sequence=i + 1) for i, q in enumerate(sizes)]
        total = sum(sizes, Decimal("0"))

        plan = plan_fifo_draw(lots, total + extra)

        assert plan.uncovered == extra
        assert plan.drawn == total
