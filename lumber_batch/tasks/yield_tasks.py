"""
Batch tasks: yield register (recovery anomaly detection).

Map: one item per yield entry completed in the window.  An entry whose
recovery lies outside [70, 105] emits an anomaly under ``item:<item_id>``;
every entry emits its severity (or ``normal``) counter.

Reduce: anomalies are grouped per item with a count per severity.
Optionally raises one RECOVERY_ANOMALY alert per anomalous entry.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from datetime import date, datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from lumber_batch.tasks.base import BatchItemInput, BatchTaskResult
from lumber_config.provider import SettingsProvider
from lumber_engines.yield_calc import YieldCalculator
from lumber_kernel.domain.yields import AlertType
from lumber_kernel.logging_config import get_logger
from lumber_kernel.models.yield_entry import YieldEntryModel
from lumber_services.yield_service import YieldService

logger = get_logger("batch.tasks.yield")

DEFAULT_LOOKBACK_DAYS = 30


def _as_date(value: Any, default: date) -> date:
    if value is None:
        return default
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


class YieldAnomalyTask:
    """Batch task flagging yield entries with abnormal recovery."""

    def __init__(self, settings: SettingsProvider):
        self._settings = settings

    @property
    def task_type(self) -> str:
        return "yield.anomaly_detection"

    @property
    def description(self) -> str:
        return "Flag yield entries with recovery outside the normal band"

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        to_date = _as_date(parameters.get("to_date"), as_of.date())
        from_date = _as_date(
            parameters.get("from_date"), to_date - timedelta(days=DEFAULT_LOOKBACK_DAYS),
        )
        stmt = select(YieldEntryModel).where(
            YieldEntryModel.completion_date >= from_date,
            YieldEntryModel.completion_date <= to_date,
        )
        if parameters.get("item_id"):
            stmt = stmt.where(YieldEntryModel.item_id == parameters["item_id"])
        stmt = stmt.order_by(YieldEntryModel.completion_date, YieldEntryModel.item_id)

        return tuple(
            BatchItemInput(
                item_index=i,
                item_key=str(entry.id),
                payload={"entry_id": str(entry.id)},
            )
            for i, entry in enumerate(session.execute(stmt).scalars())
        )

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult:
        model = session.get(YieldEntryModel, UUID(item.payload["entry_id"]))
        if model is None:
            return BatchTaskResult.failed(
                "YIELD_ENTRY_NOT_FOUND", f"Yield entry not found: {item.payload['entry_id']}",
            )

        anomaly = YieldCalculator().classify_recovery(model.recovery_pct)
        if anomaly is None:
            return BatchTaskResult.succeeded(("normal", 1))

        if parameters.get("raise_alerts"):
            service = YieldService(session, self._settings)
            service.create_alert(
                AlertType.RECOVERY_ANOMALY,
                anomaly.severity,
                anomaly.message,
                item_id=model.item_id,
                work_order_id=model.work_order_id,
                entry_id=model.id,
            )

        return BatchTaskResult.succeeded(
            (f"severity:{anomaly.severity.value}", 1),
            (f"item:{model.item_id}", {
                "entry_id": str(model.id),
                "work_order_id": model.work_order_id,
                "recovery_pct": str(model.recovery_pct),
                "severity": anomaly.severity.value,
                "message": anomaly.message,
            }),
            severity=anomaly.severity.value,
        )

    def reduce(self, key: str, values: Sequence[Any]) -> Any:
        if key.startswith("item:"):
            severities = Counter(v["severity"] for v in values)
            return {
                "count": len(values),
                "by_severity": dict(sorted(severities.items())),
                "entries": list(values),
            }
        return sum(values)

    def summarize(self, reduced: dict[str, Any]) -> dict[str, Any]:
        by_item = {
            key.split(":", 1)[1]: value
            for key, value in sorted(reduced.items())
            if key.startswith("item:")
        }
        by_severity = {
            key.split(":", 1)[1]: count
            for key, count in reduced.items()
            if key.startswith("severity:")
        }
        anomalies = sum(by_severity.values())
        summary = {
            "entries_checked": anomalies + reduced.get("normal", 0),
            "anomaly_count": anomalies,
            "by_severity": by_severity,
            "items_affected": sorted(by_item),
            "by_item": by_item,
        }
        logger.info("yield_anomaly_summary", extra={
            "entries_checked": summary["entries_checked"],
            "anomaly_count": anomalies,
            "by_severity": by_severity,
            "items_affected": summary["items_affected"],
        })
        return summary
