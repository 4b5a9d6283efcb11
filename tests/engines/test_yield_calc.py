"""
Tests for yield, waste and recovery arithmetic.

Covers:
- Theoretical requirement and expected waste
- Recovery percentage and excess-consumption waste
- Variance classification with an inclusive -5 tolerance boundary
- Recovery anomaly severity bands
- Summary reduction
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from lumber_engines.yield_calc import RecoveryAnomaly, YieldCalculator
from lumber_kernel.domain.yields import AnomalySeverity, VarianceStatus, YieldEntry


def _entry(theoretical, actual, waste, recovery, item_id="2X4-SPF"):
    return YieldEntry(
        entry_id=uuid4(),
        item_id=item_id,
        theoretical_bf=Decimal(theoretical),
        actual_bf=Decimal(actual),
        waste_bf=Decimal(waste),
        recovery_pct=Decimal(recovery),
        expected_yield_pct=Decimal("90"),
        variance_pct=Decimal("0"),
        variance_status=VarianceStatus.ABOVE_EXPECTED,
        completion_date=date(2024, 3, 1),
    )


class TestRequirementAndWaste:
    def setup_method(self):
        self.calc = YieldCalculator(bf_precision=2)

    def test_theoretical_requirement(self):
        """100 BF finished at 95% yield needs 105.26 BF raw."""
        assert self.calc.theoretical_requirement(Decimal("100"), Decimal("95")) == Decimal("105.26")

    @pytest.mark.parametrize("pct", [None, 0, 120, "bad"])
    def test_invalid_yield_requires_finished_quantity(self, pct):
        assert self.calc.theoretical_requirement(Decimal("100"), pct) == Decimal("100.00")

    def test_expected_waste(self):
        assert self.calc.expected_waste(Decimal("100"), Decimal("90")) == Decimal("10.00")

    def test_expected_waste_with_invalid_yield(self):
        assert self.calc.expected_waste(Decimal("100"), None) == Decimal("0")

    def test_recovery_pct(self):
        assert self.calc.recovery_pct(Decimal("85"), Decimal("100")) == Decimal("85.00")

    def test_recovery_pct_without_input(self):
        assert self.calc.recovery_pct(Decimal("85"), 0) == Decimal("0")

    def test_waste_is_excess_consumption(self):
        assert self.calc.waste_bf(Decimal("100"), Decimal("112")) == Decimal("12.00")

    def test_waste_never_negative(self):
        assert self.calc.waste_bf(Decimal("100"), Decimal("90")) == Decimal("0")


class TestCompareYield:
    """Tests for variance status classification."""

    def setup_method(self):
        self.calc = YieldCalculator()

    def test_at_expected_is_above(self):
        assert self.calc.compare_yield(90, 90).status is VarianceStatus.ABOVE_EXPECTED

    def test_tolerance_boundary_is_inclusive(self):
        comparison = self.calc.compare_yield(Decimal("90"), Decimal("85"))

        assert comparison.variance == Decimal("-5.00")
        assert comparison.status is VarianceStatus.WITHIN_TOLERANCE

    def test_just_past_tolerance(self):
        comparison = self.calc.compare_yield(Decimal("90"), Decimal("84.99"))

        assert comparison.status is VarianceStatus.BELOW_EXPECTED

    def test_above_expected(self):
        comparison = self.calc.compare_yield(Decimal("85"), Decimal("92.5"))

        assert comparison.variance == Decimal("7.50")
        assert comparison.status is VarianceStatus.ABOVE_EXPECTED


class TestClassifyRecovery:
    """Tests for the [70, 105] anomaly band."""

    def setup_method(self):
        self.calc = YieldCalculator()

    @pytest.mark.parametrize("pct", ["70", "85", "105"])
    def test_inside_band_is_normal(self, pct):
        assert self.calc.classify_recovery(Decimal(pct)) is None

    @pytest.mark.parametrize(
        "pct,severity",
        [
            ("49.99", AnomalySeverity.HIGH),
            ("50", AnomalySeverity.MEDIUM),
            ("69.99", AnomalySeverity.MEDIUM),
            ("105.01", AnomalySeverity.LOW),
        ],
    )
    def test_severity(self, pct, severity):
        anomaly = self.calc.classify_recovery(Decimal(pct))

        assert anomaly is not None
        assert anomaly.severity is severity

    def test_messages(self):
        high = RecoveryAnomaly(Decimal("110"), AnomalySeverity.LOW)
        low = RecoveryAnomaly(Decimal("40"), AnomalySeverity.HIGH)

        assert high.message == "Recovery 110% exceeds 105%"
        assert low.message == "Recovery 40% is below 70%"


class TestSummarize:
    def setup_method(self):
        self.calc = YieldCalculator()

    def test_sums_and_average(self):
        summary = self.calc.summarize(
            [
                _entry("100", "110", "10", "90.91"),
                _entry("50", "50", "0", "100"),
            ],
            key="2X4-SPF",
        )

        assert summary.count == 2
        assert summary.sum_theoretical == Decimal("150")
        assert summary.sum_actual == Decimal("160")
        assert summary.sum_waste == Decimal("10")
        assert summary.avg_recovery_pct == Decimal("95.46")
        assert summary.key == "2X4-SPF"

    def test_empty(self):
        summary = self.calc.summarize([])

        assert summary.count == 0
        assert summary.avg_recovery_pct == Decimal("0")
