"""
lumber_services.yield_service -- Yield register entries, waste analysis, alerts.

Responsibility:
    Record one yield entry per work-order completion (derived waste,
    recovery and variance), adjust entries through an audited path, raise
    yield alerts, and answer the grouped yield / waste questions the
    reports ask (by item, by waste reason, by work order).

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Formulas live in ``lumber_engines.yield_calc.YieldCalculator``;
    statistics in ``lumber_engines.yield_analytics``.  This module adds
    persistence (``yield_entries``, ``yield_adjustments``,
    ``yield_alerts``) and the item / settings lookups.

Invariants enforced:
    - waste_bf = max(0, actual_bf - theoretical_bf), rounded to the
      configured BF precision, on create and on every adjustment.
    - recovery_pct = actual_bf / theoretical_bf x 100 (0 when the
      theoretical requirement is 0).
    - An entry changes only through ``adjust_yield_entry``, which writes
      one YieldAdjustment row per changed field.
    - Alerts never block the entry they describe.

Failure modes:
    - MissingRequiredFieldError, InvalidQuantityError,
      InvalidYieldPercentageError, OutputExceedsInputError are raised for
      bad input.
    - YieldEntryNotFoundError from ``get_yield_entry`` /
      ``adjust_yield_entry`` for an unknown entry.
    - Persistence failures are returned as ``OperationResult.fail`` with
      code PERSISTENCE_ERROR; the SAVEPOINT is rolled back.
    - Yield tracking disabled in settings: ``create_yield_entry`` returns
      ``OperationResult.fail`` with code YIELD_TRACKING_DISABLED.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lumber_config.provider import SettingsProvider
from lumber_engines.bf_calculator import round_to
from lumber_engines.validation import HIGH_WASTE_WARNING_PCT
from lumber_engines.yield_analytics import (
    BENCHMARK_WINDOW_DAYS,
    ItemBenchmark,
    OutlierReport,
    YieldStatistics,
    compute_statistics,
    detect_outliers,
    item_benchmarks,
)
from lumber_engines.yield_calc import YieldCalculator
from lumber_kernel.domain.clock import Clock, SystemClock
from lumber_kernel.domain.results import OperationResult
from lumber_kernel.domain.values import ONE_HUNDRED, ZERO, parse_decimal
from lumber_kernel.domain.yields import (
    AlertType,
    AnomalySeverity,
    VarianceStatus,
    YieldAdjustment,
    YieldAlert,
    YieldEntry,
    YieldSummary,
)
from lumber_kernel.exceptions import (
    InvalidQuantityError,
    InvalidYieldPercentageError,
    MissingRequiredFieldError,
    OutputExceedsInputError,
    YieldEntryNotFoundError,
)
from lumber_kernel.logging_config import LogContext, get_logger
from lumber_kernel.models.yield_entry import (
    YieldAdjustmentModel,
    YieldAlertModel,
    YieldEntryModel,
)
from lumber_services.item_master import ItemCache, SqlItemMaster

logger = get_logger("services.yield")

PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
YIELD_TRACKING_DISABLED = "YIELD_TRACKING_DISABLED"
UNSPECIFIED_REASON = "Unspecified"


@dataclass(frozen=True)
class WasteByReason:
    reason: str
    total_waste_bf: Decimal
    count: int


def _non_negative(value: Any, field_name: str) -> Decimal:
    amount = parse_decimal(value)
    if amount is None:
        raise InvalidQuantityError(field_name, str(value), "not a number")
    if amount < ZERO:
        raise InvalidQuantityError(field_name, str(value), "cannot be negative")
    return amount


class YieldService:
    """
    Yield register and waste analysis.

    Contract:
        Receives a Session and a SettingsProvider via constructor
        injection.  Item defaults are read through an ItemCache (built over
        the ``items`` table when none is given).
    Non-goals:
        - Does not render reports; callers format the returned summaries.
    """

    def __init__(
        self,
        session: Session,
        settings: SettingsProvider,
        item_cache: ItemCache | None = None,
        clock: Clock | None = None,
    ):
        self.session = session
        self.settings = settings
        self.clock = clock or SystemClock()
        if item_cache is None:
            item_cache = ItemCache(SqlItemMaster(session), clock=self.clock)
        self.item_cache = item_cache

    def _calculator(self) -> YieldCalculator:
        current = self.settings.get()
        return YieldCalculator(
            bf_precision=current.bf_precision,
            percentage_precision=current.percentage_precision,
        )

    # =========================================================================
    # Item defaults
    # =========================================================================

    def item_default_yield(self, item_id: str | None) -> Decimal:
        """Item yield % when set and in (0, 100]; otherwise the settings default."""
        default = self.settings.get().default_yield_pct
        if not item_id:
            return default
        record = self.item_cache.get(item_id)
        if record is None or record.default_yield_pct is None:
            return default
        if ZERO < record.default_yield_pct <= ONE_HUNDRED:
            return record.default_yield_pct
        return default

    def item_default_waste(self, item_id: str | None) -> Decimal:
        """Item waste % when set and in [0, 100]; otherwise the settings default."""
        default = self.settings.get().default_waste_pct
        if not item_id:
            return default
        record = self.item_cache.get(item_id)
        if record is None or record.default_waste_pct is None:
            return default
        if ZERO <= record.default_waste_pct <= ONE_HUNDRED:
            return record.default_waste_pct
        return default

    # =========================================================================
    # Entries
    # =========================================================================

    def create_yield_entry(
        self,
        item_id: str,
        theoretical_bf: Decimal,
        actual_bf: Decimal,
        work_order_id: str | None = None,
        location_id: str | None = None,
        expected_yield_pct: Decimal | None = None,
        waste_reason: str | None = None,
        operator_id: str | None = None,
        completion_date: date | None = None,
    ) -> OperationResult[YieldEntry]:
        """
        Record the material a completion needed against what it consumed.

        Args:
            item_id: Finished item.
            theoretical_bf: Raw BF the completion should have needed.
            actual_bf: Raw BF actually consumed.
            expected_yield_pct: Target yield; defaults to the item's.

        Raises:
            MissingRequiredFieldError: item missing.
            InvalidQuantityError: negative or non-numeric quantities.
            InvalidYieldPercentageError: expected yield outside (0, 100].
        """
        if not item_id:
            raise MissingRequiredFieldError("item_id", "yield entry")
        theoretical = _non_negative(theoretical_bf, "theoretical_bf")
        actual = _non_negative(actual_bf, "actual_bf")

        if not self.settings.is_yield_enabled():
            logger.info("yield_entry_skipped_disabled", extra={"item_id": item_id})
            return OperationResult.fail("Yield tracking is not enabled", YIELD_TRACKING_DISABLED)

        expected = (
            parse_decimal(expected_yield_pct)
            if expected_yield_pct is not None
            else self.item_default_yield(item_id)
        )
        if expected is None or not (ZERO < expected <= ONE_HUNDRED):
            raise InvalidYieldPercentageError(str(expected_yield_pct))

        t0 = time.monotonic()
        calc = self._calculator()
        comparison = calc.compare_yield(expected, calc.recovery_pct(actual, theoretical))

        model = YieldEntryModel(
            id=uuid4(),
            item_id=item_id,
            work_order_id=work_order_id,
            location_id=location_id,
            theoretical_bf=round_to(theoretical, calc.bf_precision),
            actual_bf=round_to(actual, calc.bf_precision),
            waste_bf=calc.waste_bf(theoretical, actual),
            recovery_pct=comparison.actual_pct,
            expected_yield_pct=round_to(expected, calc.percentage_precision),
            variance_pct=comparison.variance,
            variance_status=comparison.status.value,
            waste_reason=waste_reason or None,
            operator_id=operator_id,
            completion_date=completion_date or self.clock.today(),
        )

        savepoint = self.session.begin_nested()
        try:
            self.session.add(model)
            self.session.flush()
        except SQLAlchemyError as e:
            savepoint.rollback()
            logger.error("yield_entry_persistence_error", extra={
                "item_id": item_id,
                "work_order_id": work_order_id,
            }, exc_info=True)
            return OperationResult.fail(str(e), PERSISTENCE_ERROR)
        savepoint.commit()

        entry = model.to_dto()
        logger.info("yield_entry_created", extra={
            "entry_id": str(entry.entry_id),
            "item_id": item_id,
            "work_order_id": work_order_id,
            "theoretical_bf": str(entry.theoretical_bf),
            "actual_bf": str(entry.actual_bf),
            "waste_bf": str(entry.waste_bf),
            "recovery_pct": str(entry.recovery_pct),
            "variance_status": entry.variance_status.value,
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })

        if self.settings.is_waste_enabled():
            self._raise_alerts(entry, calc)
        return OperationResult.ok(entry)

    def record_completion(
        self,
        item_id: str,
        consumed_bf: Decimal,
        output_bf: Decimal,
        work_order_id: str | None = None,
        location_id: str | None = None,
        yield_pct: Decimal | None = None,
        waste_reason: str | None = None,
        operator_id: str | None = None,
    ) -> OperationResult[YieldEntry]:
        """
        Yield entry for a completion that produced ``output_bf`` finished BF
        from ``consumed_bf`` raw BF.  The theoretical requirement is the
        output grossed up by the expected yield.

        Raises:
            OutputExceedsInputError: output larger than consumption.
        """
        consumed = _non_negative(consumed_bf, "consumed_bf")
        output = _non_negative(output_bf, "output_bf")
        if output > consumed:
            raise OutputExceedsInputError(str(output), str(consumed))

        expected = (
            parse_decimal(yield_pct) if yield_pct is not None else self.item_default_yield(item_id)
        )
        if expected is None or not (ZERO < expected <= ONE_HUNDRED):
            raise InvalidYieldPercentageError(str(yield_pct))

        theoretical = self._calculator().theoretical_requirement(output, expected)
        with LogContext.bind(work_order_id=work_order_id):
            return self.create_yield_entry(
                item_id=item_id,
                theoretical_bf=theoretical,
                actual_bf=consumed,
                work_order_id=work_order_id,
                location_id=location_id,
                expected_yield_pct=expected,
                waste_reason=waste_reason,
                operator_id=operator_id,
            )

    def get_yield_entry(self, entry_id: UUID) -> YieldEntry:
        model = self.session.get(YieldEntryModel, entry_id)
        if model is None:
            raise YieldEntryNotFoundError(str(entry_id))
        return model.to_dto()

    def adjust_yield_entry(
        self,
        entry_id: UUID,
        actual_bf: Decimal,
        reason: str,
        adjusted_by: str,
    ) -> OperationResult[YieldEntry]:
        """
        Correct the consumed BF of an entry.

        Waste, recovery and variance are re-derived; one audit row is written
        for each field whose value changed.
        """
        if not reason:
            raise MissingRequiredFieldError("reason", "yield adjustment")
        if not adjusted_by:
            raise MissingRequiredFieldError("adjusted_by", "yield adjustment")
        actual = _non_negative(actual_bf, "actual_bf")

        model = self.session.get(YieldEntryModel, entry_id)
        if model is None:
            raise YieldEntryNotFoundError(str(entry_id))

        calc = self._calculator()
        comparison = calc.compare_yield(
            model.expected_yield_pct, calc.recovery_pct(actual, model.theoretical_bf),
        )
        new_values = {
            "actual_bf": round_to(actual, calc.bf_precision),
            "waste_bf": calc.waste_bf(model.theoretical_bf, actual),
            "recovery_pct": comparison.actual_pct,
            "variance_pct": comparison.variance,
        }
        adjusted_at = self.clock.now()

        savepoint = self.session.begin_nested()
        try:
            changed: list[str] = []
            for field_name, new_value in new_values.items():
                previous = getattr(model, field_name)
                if previous == new_value:
                    continue
                self.session.add(YieldAdjustmentModel(
                    entry_id=model.id,
                    field_name=field_name,
                    previous_value=previous,
                    new_value=new_value,
                    change=new_value - previous,
                    reason=reason,
                    adjusted_by=adjusted_by,
                    adjusted_at=adjusted_at,
                ))
                setattr(model, field_name, new_value)
                changed.append(field_name)
            model.variance_status = comparison.status.value
            self.session.flush()
        except SQLAlchemyError as e:
            savepoint.rollback()
            logger.error("yield_adjustment_persistence_error", extra={
                "entry_id": str(entry_id),
            }, exc_info=True)
            return OperationResult.fail(str(e), PERSISTENCE_ERROR)
        savepoint.commit()

        logger.info("yield_entry_adjusted", extra={
            "entry_id": str(entry_id),
            "fields_changed": changed,
            "adjusted_by": adjusted_by,
            "reason": reason,
        })
        return OperationResult.ok(model.to_dto())

    def adjustments_for_entry(self, entry_id: UUID) -> list[YieldAdjustment]:
        stmt = (
            select(YieldAdjustmentModel)
            .where(YieldAdjustmentModel.entry_id == entry_id)
            .order_by(YieldAdjustmentModel.adjusted_at)
        )
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    def entries(
        self,
        item_id: str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
        location_id: str | None = None,
    ) -> list[YieldEntry]:
        stmt = self._filtered(select(YieldEntryModel), item_id, from_date, to_date, location_id)
        stmt = stmt.order_by(YieldEntryModel.completion_date, YieldEntryModel.created_at)
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    # =========================================================================
    # Alerts
    # =========================================================================

    def _raise_alerts(self, entry: YieldEntry, calc: YieldCalculator) -> None:
        if entry.variance_status is VarianceStatus.BELOW_EXPECTED:
            self.create_alert(
                AlertType.LOW_YIELD,
                AnomalySeverity.MEDIUM,
                f"Recovery {entry.recovery_pct}% is {abs(entry.variance_pct)}% "
                f"below expected {entry.expected_yield_pct}%",
                item_id=entry.item_id,
                work_order_id=entry.work_order_id,
                entry_id=entry.entry_id,
            )

        anomaly = calc.classify_recovery(entry.recovery_pct)
        if anomaly is not None:
            self.create_alert(
                AlertType.RECOVERY_ANOMALY,
                anomaly.severity,
                anomaly.message,
                item_id=entry.item_id,
                work_order_id=entry.work_order_id,
                entry_id=entry.entry_id,
            )

        if entry.actual_bf > ZERO:
            waste_pct = round_to(entry.waste_bf / entry.actual_bf * ONE_HUNDRED, calc.percentage_precision)
            if waste_pct > HIGH_WASTE_WARNING_PCT:
                self.create_alert(
                    AlertType.HIGH_WASTE,
                    AnomalySeverity.HIGH,
                    f"Waste {waste_pct}% of consumed material exceeds {HIGH_WASTE_WARNING_PCT}%",
                    item_id=entry.item_id,
                    work_order_id=entry.work_order_id,
                    entry_id=entry.entry_id,
                )

    def create_alert(
        self,
        alert_type: AlertType,
        severity: AnomalySeverity,
        message: str,
        item_id: str | None = None,
        work_order_id: str | None = None,
        entry_id: UUID | None = None,
    ) -> OperationResult[YieldAlert]:
        model = YieldAlertModel(
            id=uuid4(),
            alert_type=alert_type.value,
            severity=severity.value,
            message=message,
            item_id=item_id,
            work_order_id=work_order_id,
            entry_id=entry_id,
        )
        savepoint = self.session.begin_nested()
        try:
            self.session.add(model)
            self.session.flush()
        except SQLAlchemyError as e:
            savepoint.rollback()
            logger.error("yield_alert_persistence_error", extra={
                "alert_type": alert_type.value,
                "item_id": item_id,
            }, exc_info=True)
            return OperationResult.fail(str(e), PERSISTENCE_ERROR)
        savepoint.commit()

        logger.warning("yield_alert_raised", extra={
            "alert_id": str(model.id),
            "alert_type": alert_type.value,
            "severity": severity.value,
            "item_id": item_id,
            "work_order_id": work_order_id,
        })
        return OperationResult.ok(model.to_dto())

    def alerts(self, item_id: str | None = None) -> list[YieldAlert]:
        stmt = select(YieldAlertModel)
        if item_id:
            stmt = stmt.where(YieldAlertModel.item_id == item_id)
        stmt = stmt.order_by(YieldAlertModel.created_at)
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    # =========================================================================
    # Aggregation queries
    # =========================================================================

    @staticmethod
    def _filtered(stmt, item_id, from_date, to_date, location_id):
        if item_id:
            stmt = stmt.where(YieldEntryModel.item_id == item_id)
        if from_date:
            stmt = stmt.where(YieldEntryModel.completion_date >= from_date)
        if to_date:
            stmt = stmt.where(YieldEntryModel.completion_date <= to_date)
        if location_id:
            stmt = stmt.where(YieldEntryModel.location_id == location_id)
        return stmt

    def _summary(self, row: Any, key: str | None) -> YieldSummary:
        current = self.settings.get()
        return YieldSummary(
            sum_theoretical=round_to(row.sum_theoretical or ZERO, current.bf_precision),
            sum_actual=round_to(row.sum_actual or ZERO, current.bf_precision),
            sum_waste=round_to(row.sum_waste or ZERO, current.bf_precision),
            avg_recovery_pct=round_to(row.avg_recovery or ZERO, current.percentage_precision),
            count=int(row.entry_count or 0),
            key=key,
        )

    @staticmethod
    def _aggregate_columns():
        return (
            func.sum(YieldEntryModel.theoretical_bf).label("sum_theoretical"),
            func.sum(YieldEntryModel.actual_bf).label("sum_actual"),
            func.sum(YieldEntryModel.waste_bf).label("sum_waste"),
            func.avg(YieldEntryModel.recovery_pct).label("avg_recovery"),
            func.count(YieldEntryModel.id).label("entry_count"),
        )

    def yield_summary_by_item(
        self,
        item_id: str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
        location_id: str | None = None,
    ) -> list[YieldSummary]:
        """One summary per item, keyed by item_id, ordered by item."""
        stmt = select(YieldEntryModel.item_id, *self._aggregate_columns())
        stmt = self._filtered(stmt, item_id, from_date, to_date, location_id)
        stmt = stmt.group_by(YieldEntryModel.item_id).order_by(YieldEntryModel.item_id)
        summaries = [self._summary(row, row.item_id) for row in self.session.execute(stmt)]
        logger.debug("yield_summary_by_item_computed", extra={"groups": len(summaries)})
        return summaries

    def waste_by_reason(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
        location_id: str | None = None,
    ) -> list[WasteByReason]:
        """
        Total waste per reason over entries with waste > 0.  Entries without
        a reason are reported as "Unspecified".  Empty when waste tracking
        is disabled.
        """
        if not self.settings.is_waste_enabled():
            return []

        stmt = select(
            YieldEntryModel.waste_reason,
            func.sum(YieldEntryModel.waste_bf).label("total_waste"),
            func.count(YieldEntryModel.id).label("entry_count"),
        ).where(YieldEntryModel.waste_bf > ZERO)
        stmt = self._filtered(stmt, None, from_date, to_date, location_id)
        stmt = stmt.group_by(YieldEntryModel.waste_reason)

        totals: dict[str, tuple[Decimal, int]] = {}
        for row in self.session.execute(stmt):
            reason = row.waste_reason or UNSPECIFIED_REASON
            waste, count = totals.get(reason, (ZERO, 0))
            totals[reason] = (waste + (row.total_waste or ZERO), count + int(row.entry_count))

        precision = self.settings.get().bf_precision
        return sorted(
            (
                WasteByReason(reason, round_to(waste, precision), count)
                for reason, (waste, count) in totals.items()
            ),
            key=lambda r: (-r.total_waste_bf, r.reason),
        )

    def work_order_yield_analysis(self, work_order_id: str) -> YieldSummary:
        stmt = select(*self._aggregate_columns()).where(
            YieldEntryModel.work_order_id == work_order_id
        )
        return self._summary(self.session.execute(stmt).one(), work_order_id)

    # =========================================================================
    # Analytics
    # =========================================================================

    def yield_statistics(
        self,
        item_id: str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> YieldStatistics:
        return compute_statistics(self.entries(item_id, from_date, to_date))

    def yield_outliers(
        self,
        item_id: str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> OutlierReport:
        return detect_outliers(self.entries(item_id, from_date, to_date))

    def item_benchmarks(
        self,
        as_of: date | None = None,
        days: int = BENCHMARK_WINDOW_DAYS,
    ) -> dict[str, ItemBenchmark]:
        """Per-item statistics, trend and recommendations against the default yield."""
        today = as_of or self.clock.today()
        entries = self.entries()
        return item_benchmarks(
            entries, today, self.settings.get().default_yield_pct, days=days,
        )
