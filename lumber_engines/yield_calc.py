"""
lumber_engines.yield_calc -- Yield, waste and recovery arithmetic.

Responsibility:
    Pure formulas for production yield: raw material needed for a finished
    quantity, expected waste, recovery percentage, variance against the
    expected yield, recovery anomaly classification and the summary
    reduction used by yield queries and batch jobs.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by lumber_services.yield_service and lumber_batch tasks.

Invariants enforced:
    - Waste is excess consumption: waste_bf = max(0, actual - theoretical).
    - Variance tolerance band is fixed: variance >= 0 is ABOVE_EXPECTED,
      -5 <= variance < 0 is WITHIN_TOLERANCE (boundary inclusive), below
      that BELOW_EXPECTED.
    - Anomaly band is fixed at [70, 105] percent recovery.
    - A missing or invalid yield percentage is treated as 100%.

Failure modes:
    - None raised.

Usage:
    from lumber_engines.yield_calc import YieldCalculator

    calc = YieldCalculator(bf_precision=2)
    calc.theoretical_requirement(Decimal("100"), Decimal("95"))  # 105.26
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from lumber_engines.bf_calculator import round_to
from lumber_engines.tracer import traced_engine
from lumber_kernel.domain.values import (
    BF_PRECISION,
    ONE,
    ONE_HUNDRED,
    PERCENTAGE_PRECISION,
    ZERO,
    parse_decimal,
)
from lumber_kernel.domain.yields import (
    AnomalySeverity,
    VarianceStatus,
    YieldEntry,
    YieldSummary,
)

VARIANCE_TOLERANCE_PCT = Decimal("-5")
ANOMALY_LOWER_PCT = Decimal("70")
ANOMALY_UPPER_PCT = Decimal("105")
HIGH_SEVERITY_BELOW_PCT = Decimal("50")


@dataclass(frozen=True)
class YieldComparison:
    expected_pct: Decimal
    actual_pct: Decimal
    variance: Decimal
    status: VarianceStatus


@dataclass(frozen=True)
class RecoveryAnomaly:
    """A recovery percentage outside the normal band."""

    recovery_pct: Decimal
    severity: AnomalySeverity

    @property
    def message(self) -> str:
        if self.recovery_pct > ANOMALY_UPPER_PCT:
            return f"Recovery {self.recovery_pct}% exceeds {ANOMALY_UPPER_PCT}%"
        return f"Recovery {self.recovery_pct}% is below {ANOMALY_LOWER_PCT}%"


def _valid_yield(yield_pct: Any) -> Decimal | None:
    pct = parse_decimal(yield_pct)
    if pct is None or pct <= ZERO or pct > ONE_HUNDRED:
        return None
    return pct


class YieldCalculator:
    """
    Yield formulas with configurable output precision.

    Contract:
        Quantities are rounded to ``bf_precision``, percentages to
        ``percentage_precision``.  Inputs are accepted as anything
        ``parse_decimal`` understands.
    Non-goals:
        - Does not look up item default yields (see YieldService).
    """

    def __init__(
        self,
        bf_precision: int = BF_PRECISION,
        percentage_precision: int = PERCENTAGE_PRECISION,
    ):
        self.bf_precision = bf_precision
        self.percentage_precision = percentage_precision

    @traced_engine("yield", "1.0", fingerprint_fields=("finished_qty", "yield_pct"))
    def theoretical_requirement(self, finished_qty: Any, yield_pct: Any) -> Decimal:
        """Raw BF needed for ``finished_qty`` at ``yield_pct`` (qty / (pct/100))."""
        qty = parse_decimal(finished_qty, ZERO)
        pct = _valid_yield(yield_pct)
        if pct is None:
            return round_to(qty, self.bf_precision)
        return round_to(qty / (pct / ONE_HUNDRED), self.bf_precision)

    def expected_waste(self, theoretical_qty: Any, yield_pct: Any) -> Decimal:
        """theoretical x (1 - pct/100); an invalid yield means no expected waste."""
        qty = parse_decimal(theoretical_qty, ZERO)
        pct = _valid_yield(yield_pct) or ONE_HUNDRED
        return round_to(qty * (ONE - pct / ONE_HUNDRED), self.bf_precision)

    def recovery_pct(self, output_qty: Any, input_qty: Any) -> Decimal:
        output = parse_decimal(output_qty, ZERO)
        source = parse_decimal(input_qty, ZERO)
        if source <= ZERO:
            return round_to(ZERO, self.percentage_precision)
        return round_to(output / source * ONE_HUNDRED, self.percentage_precision)

    def waste_bf(self, theoretical_bf: Any, actual_bf: Any) -> Decimal:
        """Excess consumption over the theoretical requirement, never negative."""
        theoretical = parse_decimal(theoretical_bf, ZERO)
        actual = parse_decimal(actual_bf, ZERO)
        return round_to(max(ZERO, actual - theoretical), self.bf_precision)

    def compare_yield(self, expected_pct: Any, actual_pct: Any) -> YieldComparison:
        expected = parse_decimal(expected_pct, ZERO)
        actual = parse_decimal(actual_pct, ZERO)
        variance = actual - expected
        if variance >= ZERO:
            status = VarianceStatus.ABOVE_EXPECTED
        elif variance >= VARIANCE_TOLERANCE_PCT:
            status = VarianceStatus.WITHIN_TOLERANCE
        else:
            status = VarianceStatus.BELOW_EXPECTED
        return YieldComparison(
            expected_pct=expected,
            actual_pct=actual,
            variance=round_to(variance, self.percentage_precision),
            status=status,
        )

    def classify_recovery(self, recovery_pct: Any) -> RecoveryAnomaly | None:
        """None inside [70, 105]; otherwise HIGH (< 50), MEDIUM (< 70) or LOW."""
        pct = parse_decimal(recovery_pct, ZERO)
        if ANOMALY_LOWER_PCT <= pct <= ANOMALY_UPPER_PCT:
            return None
        if pct < HIGH_SEVERITY_BELOW_PCT:
            severity = AnomalySeverity.HIGH
        elif pct < ANOMALY_LOWER_PCT:
            severity = AnomalySeverity.MEDIUM
        else:
            severity = AnomalySeverity.LOW
        return RecoveryAnomaly(recovery_pct=pct, severity=severity)

    def summarize(
        self,
        entries: Iterable[YieldEntry],
        key: str | None = None,
    ) -> YieldSummary:
        """Sums, count and mean recovery over ``entries``."""
        sum_theoretical = ZERO
        sum_actual = ZERO
        sum_waste = ZERO
        sum_recovery = ZERO
        count = 0
        for entry in entries:
            sum_theoretical += entry.theoretical_bf
            sum_actual += entry.actual_bf
            sum_waste += entry.waste_bf
            sum_recovery += entry.recovery_pct
            count += 1
        avg = sum_recovery / count if count else ZERO
        return YieldSummary(
            sum_theoretical=round_to(sum_theoretical, self.bf_precision),
            sum_actual=round_to(sum_actual, self.bf_precision),
            sum_waste=round_to(sum_waste, self.bf_precision),
            avg_recovery_pct=round_to(avg, self.percentage_precision),
            count=count,
            key=key,
        )
