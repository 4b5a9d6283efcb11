"""
Batch tasks: tally sheets (lot reconciliation).

Map: one item per live lot (not void, not closed).  Each item runs the
reconciliation checks and emits ``clean`` or ``discrepancies`` plus
severity / type counters.  When ``auto_correct_enabled`` is set, WARNING
level balance and status findings are handed to
TallyService.apply_corrections, which locks the lot and moves its status
through the lot workflow.

Reduce: counters are summed; lot lists are concatenated.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from lumber_batch.tasks.base import BatchItemInput, BatchTaskResult
from lumber_config.provider import SettingsProvider
from lumber_engines.reconciliation import LotReconciliation, TallyReconciliationChecker
from lumber_kernel.domain.lots import LotStatus
from lumber_kernel.logging_config import get_logger
from lumber_kernel.models.tally import TallyAllocationModel, TallySheetModel
from lumber_services.tally_service import TallyService

logger = get_logger("batch.tasks.tally")

_LIST_KEYS = ("clean", "discrepancies")


class TallyReconciliationTask:
    """Batch task verifying lot balances against their allocation history."""

    def __init__(
        self,
        settings: SettingsProvider,
        checker: TallyReconciliationChecker | None = None,
    ):
        self._settings = settings
        self._checker = checker or TallyReconciliationChecker()

    @property
    def task_type(self) -> str:
        return "tally.reconciliation"

    @property
    def description(self) -> str:
        return "Reconcile tally sheet balances, reservations and status"

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        stmt = select(TallySheetModel).where(
            TallySheetModel.status.notin_((LotStatus.VOID.value, LotStatus.CLOSED.value)),
        )
        if parameters.get("item_id"):
            stmt = stmt.where(TallySheetModel.item_id == parameters["item_id"])
        if parameters.get("location_id"):
            stmt = stmt.where(TallySheetModel.location_id == parameters["location_id"])
        stmt = stmt.order_by(TallySheetModel.tally_number)

        return tuple(
            BatchItemInput(
                item_index=i,
                item_key=lot.tally_number,
                payload={"tally_id": str(lot.id)},
            )
            for i, lot in enumerate(session.execute(stmt).scalars())
        )

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult:
        tally_id = UUID(item.payload["tally_id"])
        model = session.get(TallySheetModel, tally_id)
        if model is None:
            return BatchTaskResult.failed(
                "TALLY_SHEET_NOT_FOUND", f"Tally sheet not found: {tally_id}",
            )

        allocations = [
            a.to_dto()
            for a in session.execute(
                select(TallyAllocationModel).where(TallyAllocationModel.tally_id == tally_id)
            ).scalars()
        ]
        reconciliation = self._checker.run_all_checks(model.to_dto(), allocations)

        emitted: list[tuple[str, Any]] = [("lots_checked", 1)]
        if reconciliation.is_clean:
            emitted.append(("clean", reconciliation.tally_number))
            return BatchTaskResult.succeeded(*emitted)

        emitted.append(("discrepancies", self._describe(model, reconciliation)))
        for discrepancy in reconciliation.discrepancies:
            emitted.append((f"severity:{discrepancy.severity.value}", 1))
            emitted.append((f"type:{discrepancy.type.value}", 1))

        auto_correct = self._settings.get().auto_correct_enabled and parameters.get(
            "auto_correct", True,
        )
        if auto_correct and reconciliation.corrections:
            corrected = TallyService(session, self._settings).apply_corrections(
                tally_id, [d.correction for d in reconciliation.corrections],
            )
            if corrected.success:
                emitted.append(("corrections_applied", corrected.value))
            else:
                logger.warning("tally_auto_correct_rejected", extra={
                    "tally_id": str(tally_id),
                    "tally_number": reconciliation.tally_number,
                    "error_code": corrected.error_code,
                    "error": corrected.error,
                })
                emitted.append(("corrections_failed", 1))

        return BatchTaskResult.succeeded(
            *emitted, discrepancy_count=len(reconciliation.discrepancies),
        )

    @staticmethod
    def _describe(model: TallySheetModel, reconciliation: LotReconciliation) -> dict[str, Any]:
        return {
            "tally_id": str(reconciliation.tally_id),
            "tally_number": reconciliation.tally_number,
            "item_id": model.item_id,
            "discrepancies": [
                {
                    "type": d.type.value,
                    "severity": d.severity.value,
                    "message": d.message,
                }
                for d in reconciliation.discrepancies
            ],
        }

    def reduce(self, key: str, values: Sequence[Any]) -> Any:
        if key in _LIST_KEYS:
            return list(values)
        return sum(values)

    def summarize(self, reduced: dict[str, Any]) -> dict[str, Any]:
        by_severity = {
            key.split(":", 1)[1]: count
            for key, count in reduced.items()
            if key.startswith("severity:")
        }
        by_type = {
            key.split(":", 1)[1]: count
            for key, count in reduced.items()
            if key.startswith("type:")
        }
        summary = {
            "lots_checked": reduced.get("lots_checked", 0),
            "clean_lots": len(reduced.get("clean", [])),
            "lots_with_discrepancies": len(reduced.get("discrepancies", [])),
            "by_severity": by_severity,
            "by_type": by_type,
            "corrections_applied": reduced.get("corrections_applied", 0),
            "corrections_failed": reduced.get("corrections_failed", 0),
        }
        logger.info("tally_reconciliation_summary", extra=summary)
        return summary
