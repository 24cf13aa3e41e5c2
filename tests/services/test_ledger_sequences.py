"""
Arbitrary intake/draw sequences against one tank.

After every step, with no correction in between:
- the lot sum equals the tank's physical quantity exactly
- a successful draw's breakdown sums to the request
- a rejected draw reports the shortfall and changes nothing
"""

from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from fuel_kernel.exceptions import InsufficientLotCoverageError
from fuel_kernel.services.allocation import AllocationService
from tests.support import MRN_A, MRN_B, MRN_C, MRN_D

quantities = st.decimals(
    min_value=Decimal("0.001"),
    max_value=Decimal("500"),
    places=3,
    allow_nan=False,
    allow_infinity=False,
)

steps = st.lists(
    st.one_of(
        st.tuples(st.just("intake"), st.sampled_from([MRN_A, MRN_B, MRN_C, MRN_D]), quantities),
        st.tuples(st.just("draw"), st.none(), quantities),
    ),
    min_size=1,
    max_size=12,
)


class TestLedgerMatchesTank:
    @given(sequence=steps)
    @settings(
        max_examples=40,
        deadline=None,
        suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
    )
    def test_lot_sum_tracks_physical_quantity(self, session, make_tank, ledger, clock, sequence):
        tank = make_tank()
        allocation = AllocationService(session, clock, ledger=ledger)
        expected = Decimal("0")

        for kind, mrn, quantity in sequence:
            if kind == "intake":
                ledger.add_lot(tank.id, mrn, quantity)
                expected += quantity
            else:
                try:
                    breakdown = allocation.allocate(tank.id, quantity)
                except InsufficientLotCoverageError as exc:
                    assert exc.uncovered == quantity - expected
                else:
                    assert breakdown.total == quantity
                    assert sum(q for _, q in breakdown.as_pairs()) == quantity
                    expected -= quantity
            clock.advance(1)

            assert ledger.sum_remaining(tank.id) == expected
            assert tank.current_quantity == expected
            assert all(
                Decimal("0") <= lot.remaining_quantity <= lot.original_quantity
                for lot in ledger.list_lots(tank.id)
            )
