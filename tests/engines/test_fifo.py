"""
Tests for the FIFO draw planner.

Covers:
- Oldest lot drawn first, tie broken by tally number
- Partial fulfilment reports a shortfall
- Input order does not change the plan
- Conservation: total + shortfall == required
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

from hypothesis import given, settings
from hypothesis import strategies as st

from lumber_engines.fifo import FifoCandidate, fifo_order, plan_fifo_draws


def _lot(number, received, available):
    return FifoCandidate(
        tally_id=uuid4(),
        tally_number=number,
        received_date=received,
        available_bf=Decimal(available),
    )


class TestPlanFifoDraws:
    def setup_method(self):
        self.lot_a = _lot("TS-A", date(2024, 1, 1), "30")
        self.lot_b = _lot("TS-B", date(2024, 1, 5), "20")

    def test_draws_oldest_first(self):
        plan = plan_fifo_draws(Decimal("40"), [self.lot_b, self.lot_a])

        assert [(d.candidate.tally_number, d.amount_bf) for d in plan.draws] == [
            ("TS-A", Decimal("30")),
            ("TS-B", Decimal("10")),
        ]
        assert plan.total_allocated == Decimal("40")
        assert plan.shortfall == Decimal("0")
        assert plan.is_fully_allocated

    def test_shortfall_when_insufficient(self):
        plan = plan_fifo_draws(Decimal("60"), [self.lot_a, self.lot_b])

        assert plan.total_allocated == Decimal("50")
        assert plan.shortfall == Decimal("10")
        assert not plan.is_fully_allocated

    def test_stops_once_satisfied(self):
        plan = plan_fifo_draws(Decimal("25"), [self.lot_a, self.lot_b])

        assert len(plan.draws) == 1
        assert plan.draws[0].amount_bf == Decimal("25")

    def test_skips_empty_lots(self):
        empty = _lot("TS-0", date(2023, 12, 1), "0")

        plan = plan_fifo_draws(Decimal("10"), [empty, self.lot_a])

        assert [d.candidate.tally_number for d in plan.draws] == ["TS-A"]

    def test_zero_requirement(self):
        plan = plan_fifo_draws(Decimal("0"), [self.lot_a])

        assert plan.draws == ()
        assert plan.shortfall == Decimal("0")

    def test_no_candidates(self):
        plan = plan_fifo_draws(Decimal("15"), [])

        assert plan.total_allocated == Decimal("0")
        assert plan.shortfall == Decimal("15")


class TestFifoOrder:
    def test_same_day_tie_broken_by_tally_number(self):
        day = date(2024, 2, 1)
        later = _lot("TS-0002", day, "5")
        earlier = _lot("TS-0001", day, "5")

        assert [c.tally_number for c in fifo_order([later, earlier])] == ["TS-0001", "TS-0002"]


class TestFifoProperties:
    """Property: draws never exceed availability and conserve the requirement."""

    @settings(max_examples=60, deadline=None)
    @given(
        required=st.decimals(min_value=Decimal("0.01"), max_value=Decimal("5000"), places=2),
        lots=st.lists(
            st.tuples(
                st.integers(min_value=0, max_value=60),
                st.decimals(min_value=Decimal("0"), max_value=Decimal("1000"), places=2),
            ),
            max_size=8,
        ),
    )
    def test_conservation(self, required, lots):
        candidates = [
            _lot(f"TS-{i:04d}", date(2024, 1, 1) + timedelta(days=offset), str(bf))
            for i, (offset, bf) in enumerate(lots)
        ]

        plan = plan_fifo_draws(required, candidates)

        assert plan.total_allocated + plan.shortfall == required
        assert sum((d.amount_bf for d in plan.draws), Decimal("0")) == plan.total_allocated
        for draw in plan.draws:
            assert Decimal("0") < draw.amount_bf <= draw.candidate.available_bf
