"""
lumber_engines.yield_analytics -- Statistics, outliers and trends over yield entries.

Responsibility:
    Descriptive statistics of recovery percentages, statistical outliers
    (outside mean +/- 2 standard deviations), half-window and week/month
    trends, per-item benchmarks and the recommendations derived from them.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Entries are loaded by
    the caller (YieldService or a batch task) and passed in as snapshots.

Invariants enforced:
    - Standard deviation is the population standard deviation.
    - A window with fewer than two entries, or zero spread, has no outliers.
    - Trend thresholds: a half-window change above +2 points is improving,
      below -2 points declining, otherwise stable.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum

from lumber_engines.bf_calculator import round_to
from lumber_engines.tracer import traced_engine
from lumber_kernel.domain.values import ZERO
from lumber_kernel.domain.yields import YieldEntry
from lumber_kernel.logging_config import get_logger

logger = get_logger("engines.yield_analytics")

OUTLIER_STD_DEVS = Decimal("2")
MAX_OUTLIERS = 100
TREND_THRESHOLD_PCT = Decimal("2")
WEEKLY_TREND_THRESHOLD_PCT = Decimal("1")
HIGH_VARIABILITY_STD_DEV = Decimal("10")
WIDE_RANGE_PCT = Decimal("20")
BELOW_TARGET_MARGIN_PCT = Decimal("10")
BENCHMARK_WINDOW_DAYS = 90


class Trend(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


@dataclass(frozen=True)
class YieldStatistics:
    count: int
    avg_recovery_pct: Decimal
    min_recovery_pct: Decimal
    max_recovery_pct: Decimal
    std_dev: Decimal
    total_theoretical_bf: Decimal
    total_actual_bf: Decimal
    total_waste_bf: Decimal


@dataclass(frozen=True)
class YieldOutlier:
    entry: YieldEntry
    deviation: Decimal  # in standard deviations
    direction: str  # "low" or "high"


@dataclass(frozen=True)
class OutlierReport:
    outliers: tuple[YieldOutlier, ...]
    lower_bound: Decimal
    upper_bound: Decimal
    total_checked: int


@dataclass(frozen=True)
class PeriodTrends:
    this_week_avg: Decimal
    last_week_avg: Decimal
    weekly_change: Decimal
    monthly_change: Decimal
    overall: Trend
    projected_yield: Decimal


@dataclass(frozen=True)
class Recommendation:
    kind: str  # critical | warning | info | success
    message: str


@dataclass(frozen=True)
class ItemBenchmark:
    item_id: str
    statistics: YieldStatistics
    trend: Trend
    recommendations: tuple[Recommendation, ...]


def _mean(values: Sequence[Decimal]) -> Decimal:
    if not values:
        return ZERO
    return sum(values, ZERO) / len(values)


def _in_window(entry: YieldEntry, start: date, end: date) -> bool:
    return start <= entry.completion_date <= end


def compute_statistics(entries: Iterable[YieldEntry]) -> YieldStatistics:
    items = list(entries)
    values = [e.recovery_pct for e in items]
    if not values:
        return YieldStatistics(0, ZERO, ZERO, ZERO, ZERO, ZERO, ZERO, ZERO)
    mean = _mean(values)
    variance = sum(((v - mean) ** 2 for v in values), ZERO) / len(values)
    return YieldStatistics(
        count=len(values),
        avg_recovery_pct=round_to(mean, 2),
        min_recovery_pct=min(values),
        max_recovery_pct=max(values),
        std_dev=round_to(variance.sqrt(), 4),
        total_theoretical_bf=sum((e.theoretical_bf for e in items), ZERO),
        total_actual_bf=sum((e.actual_bf for e in items), ZERO),
        total_waste_bf=sum((e.waste_bf for e in items), ZERO),
    )


@traced_engine("yield_analytics", "1.0")
def detect_outliers(
    entries: Sequence[YieldEntry],
    threshold: Decimal = OUTLIER_STD_DEVS,
) -> OutlierReport:
    """Entries whose recovery lies outside mean +/- threshold x std dev."""
    values = [e.recovery_pct for e in entries]
    if len(values) < 2:
        mean = _mean(values)
        return OutlierReport((), mean, mean, len(values))

    mean = _mean(values)
    std_dev = (sum(((v - mean) ** 2 for v in values), ZERO) / len(values)).sqrt()
    lower = mean - threshold * std_dev
    upper = mean + threshold * std_dev
    if std_dev == ZERO:
        return OutlierReport((), lower, upper, len(values))

    outliers: list[YieldOutlier] = []
    for entry in entries:
        pct = entry.recovery_pct
        if lower <= pct <= upper:
            continue
        outliers.append(YieldOutlier(
            entry=entry,
            deviation=round_to(abs(pct - mean) / std_dev, 2),
            direction="low" if pct < lower else "high",
        ))
        if len(outliers) >= MAX_OUTLIERS:
            break

    logger.info("yield_outliers_detected", extra={
        "total_checked": len(values),
        "outlier_count": len(outliers),
        "lower_bound": str(round_to(lower, 2)),
        "upper_bound": str(round_to(upper, 2)),
    })
    return OutlierReport(
        outliers=tuple(outliers),
        lower_bound=round_to(lower, 2),
        upper_bound=round_to(upper, 2),
        total_checked=len(values),
    )


def _average_between(entries: Sequence[YieldEntry], start: date, end: date) -> Decimal:
    return _mean([e.recovery_pct for e in entries if _in_window(e, start, end)])


def item_trend(entries: Sequence[YieldEntry], as_of: date, days: int) -> Trend:
    """Compare the recent half of the window with the older half."""
    half = days // 2
    recent = _average_between(entries, as_of - timedelta(days=half), as_of)
    older = _average_between(
        entries, as_of - timedelta(days=days), as_of - timedelta(days=half + 1),
    )
    diff = recent - older
    if diff > TREND_THRESHOLD_PCT:
        return Trend.IMPROVING
    if diff < -TREND_THRESHOLD_PCT:
        return Trend.DECLINING
    return Trend.STABLE


def period_trends(entries: Sequence[YieldEntry], as_of: date) -> PeriodTrends:
    """Week-over-week and month-over-month change with a 4-week projection."""
    this_week = _average_between(entries, as_of - timedelta(days=6), as_of)
    last_week = _average_between(entries, as_of - timedelta(days=13), as_of - timedelta(days=7))
    this_month = _average_between(entries, as_of - timedelta(days=29), as_of)
    last_month = _average_between(entries, as_of - timedelta(days=59), as_of - timedelta(days=30))

    weekly_change = this_week - last_week
    monthly_change = this_month - last_month
    if weekly_change > WEEKLY_TREND_THRESHOLD_PCT and monthly_change > ZERO:
        overall = Trend.IMPROVING
    elif weekly_change < -WEEKLY_TREND_THRESHOLD_PCT and monthly_change < ZERO:
        overall = Trend.DECLINING
    else:
        overall = Trend.STABLE

    return PeriodTrends(
        this_week_avg=round_to(this_week, 2),
        last_week_avg=round_to(last_week, 2),
        weekly_change=round_to(weekly_change, 2),
        monthly_change=round_to(monthly_change, 2),
        overall=overall,
        projected_yield=round_to(this_week + weekly_change * 4, 2),
    )


def recommendations(
    stats: YieldStatistics,
    trend: Trend,
    target_yield_pct: Decimal,
) -> tuple[Recommendation, ...]:
    found: list[Recommendation] = []
    if stats.count == 0:
        return ()
    if stats.avg_recovery_pct < target_yield_pct - BELOW_TARGET_MARGIN_PCT:
        found.append(Recommendation(
            "critical",
            f"Average yield ({round_to(stats.avg_recovery_pct, 1)}%) is significantly "
            "below target. Review process and equipment.",
        ))
    if stats.std_dev > HIGH_VARIABILITY_STD_DEV:
        found.append(Recommendation(
            "warning",
            f"High yield variability (StdDev: {round_to(stats.std_dev, 1)}%). "
            "Investigate inconsistent factors.",
        ))
    if trend is Trend.DECLINING:
        found.append(Recommendation(
            "warning",
            "Yield trend is declining. Monitor for equipment wear or process drift.",
        ))
    if stats.max_recovery_pct - stats.min_recovery_pct > WIDE_RANGE_PCT:
        found.append(Recommendation(
            "info",
            f"Wide yield range ({round_to(stats.min_recovery_pct, 1)}% - "
            f"{round_to(stats.max_recovery_pct, 1)}%). Consider standardizing procedures.",
        ))
    if trend is Trend.IMPROVING and stats.avg_recovery_pct >= target_yield_pct:
        found.append(Recommendation(
            "success", "Excellent performance. Yield is above target and improving.",
        ))
    return tuple(found)


@traced_engine("yield_analytics", "1.0", fingerprint_fields=("as_of", "days"))
def item_benchmarks(
    entries: Sequence[YieldEntry],
    as_of: date,
    target_yield_pct: Decimal,
    days: int = BENCHMARK_WINDOW_DAYS,
) -> dict[str, ItemBenchmark]:
    """Statistics, trend and recommendations per item over the last ``days``."""
    start = as_of - timedelta(days=days)
    by_item: dict[str, list[YieldEntry]] = defaultdict(list)
    for entry in entries:
        if _in_window(entry, start, as_of):
            by_item[entry.item_id].append(entry)

    benchmarks: dict[str, ItemBenchmark] = {}
    for item_id in sorted(by_item):
        item_entries = by_item[item_id]
        stats = compute_statistics(item_entries)
        trend = item_trend(item_entries, as_of, days)
        benchmarks[item_id] = ItemBenchmark(
            item_id=item_id,
            statistics=stats,
            trend=trend,
            recommendations=recommendations(stats, trend, target_yield_pct),
        )
    return benchmarks
