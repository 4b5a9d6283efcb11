"""
BatchExecutor -- SAVEPOINT-per-item map/reduce execution engine.

Contract:
    Runs one BatchTask: prepare items, map each item inside its own
    SAVEPOINT, group the emitted pairs by key, reduce each key, summarize.

Architecture: lumber_batch/services.  Imports from lumber_batch.domain,
    lumber_batch.tasks and the kernel.

Invariants enforced:
    - SAVEPOINT isolation per item (one failure doesn't abort the run).
    - Only succeeded items contribute emissions to the reduce phase.
    - All timestamps from injected Clock.
"""

from __future__ import annotations

import time
from collections import defaultdict
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from lumber_batch.domain.types import (
    BatchItemResult,
    BatchItemStatus,
    BatchRunResult,
    BatchRunStatus,
)
from lumber_batch.tasks.base import BatchTask, TaskRegistry
from lumber_kernel.domain.clock import Clock, SystemClock
from lumber_kernel.exceptions import TaskNotRegisteredError
from lumber_kernel.logging_config import LogContext, get_logger

logger = get_logger("batch.executor")


class BatchExecutor:
    """Batch execution engine with SAVEPOINT-per-item isolation.

    Contract:
        - ``run()`` executes a task instance.
        - ``run_registered()`` looks the task up in the registry first.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT persist run history.
    """

    def __init__(
        self,
        session: Session,
        task_registry: TaskRegistry | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._task_registry = task_registry if task_registry is not None else TaskRegistry()
        self._clock = clock or SystemClock()

    def run_registered(
        self,
        task_type: str,
        parameters: dict[str, Any] | None = None,
    ) -> BatchRunResult:
        """Run the task registered under ``task_type``.

        Raises:
            TaskNotRegisteredError: If task_type is not in the registry.
        """
        if task_type not in self._task_registry:
            raise TaskNotRegisteredError(task_type)
        return self.run(self._task_registry.get(task_type), parameters)

    def run(
        self,
        task: BatchTask,
        parameters: dict[str, Any] | None = None,
    ) -> BatchRunResult:
        """Execute ``task`` with SAVEPOINT-per-item isolation."""
        run_id = uuid4()
        with LogContext.bind(job_id=run_id):
            return self._execute(task, parameters or {}, run_id)

    def _execute(
        self,
        task: BatchTask,
        params: dict[str, Any],
        run_id: UUID,
    ) -> BatchRunResult:
        start_time = time.monotonic()
        now = self._clock.now()

        logger.info(
            "batch_run_started",
            extra={
                "run_id": str(run_id),
                "task_type": task.task_type,
                "parameters": sorted(params),
            },
        )

        # Prepare items
        try:
            items = task.prepare_items(
                parameters=params,
                session=self._session,
                as_of=now,
            )
        except Exception as exc:
            logger.error(
                "batch_prepare_failed",
                extra={"run_id": str(run_id), "task_type": task.task_type},
                exc_info=True,
            )
            return BatchRunResult(
                run_id=run_id,
                task_type=task.task_type,
                status=BatchRunStatus.FAILED,
                total_items=0,
                succeeded=0,
                failed=0,
                skipped=0,
                error_summary=f"prepare_items failed: {exc}",
                started_at=now,
                completed_at=self._clock.now(),
                duration_ms=int((time.monotonic() - start_time) * 1000),
            )

        # Map phase, one SAVEPOINT per item
        succeeded = 0
        failed = 0
        skipped = 0
        item_results: list[BatchItemResult] = []
        grouped: dict[str, list[Any]] = defaultdict(list)

        for batch_item in items:
            item_start = time.monotonic()
            item_started_at = self._clock.now()

            savepoint = self._session.begin_nested()
            try:
                result = task.execute_item(
                    item=batch_item,
                    parameters=params,
                    session=self._session,
                    as_of=now,
                )
                if result.status == BatchItemStatus.SUCCEEDED:
                    savepoint.commit()
                    succeeded += 1
                    for key, value in result.emitted:
                        grouped[key].append(value)
                elif result.status == BatchItemStatus.SKIPPED:
                    savepoint.rollback()
                    skipped += 1
                else:
                    savepoint.rollback()
                    failed += 1
                    logger.warning(
                        "batch_item_failed",
                        extra={
                            "run_id": str(run_id),
                            "item_key": batch_item.item_key,
                            "error_code": result.error_code,
                            "error_message": result.error_message,
                        },
                    )

                item_result = BatchItemResult(
                    item_index=batch_item.item_index,
                    item_key=batch_item.item_key,
                    status=result.status,
                    error_code=result.error_code,
                    error_message=result.error_message,
                    result_data=result.result_data,
                    emitted=result.emitted,
                    duration_ms=int((time.monotonic() - item_start) * 1000),
                    started_at=item_started_at,
                    completed_at=self._clock.now(),
                )

            except Exception as exc:
                savepoint.rollback()
                failed += 1
                logger.warning(
                    "batch_item_failed",
                    extra={
                        "run_id": str(run_id),
                        "item_key": batch_item.item_key,
                        "error_code": "UNHANDLED_EXCEPTION",
                        "error_message": str(exc),
                    },
                    exc_info=True,
                )

                item_result = BatchItemResult(
                    item_index=batch_item.item_index,
                    item_key=batch_item.item_key,
                    status=BatchItemStatus.FAILED,
                    error_code="UNHANDLED_EXCEPTION",
                    error_message=str(exc),
                    duration_ms=int((time.monotonic() - item_start) * 1000),
                    started_at=item_started_at,
                    completed_at=self._clock.now(),
                )

            item_results.append(item_result)

        # Reduce phase
        reduced = {key: task.reduce(key, values) for key, values in grouped.items()}
        summary = task.summarize(reduced)

        # Determine final status
        if failed == 0:
            status = BatchRunStatus.COMPLETED
        elif succeeded == 0 and skipped == 0:
            status = BatchRunStatus.FAILED
        else:
            status = BatchRunStatus.PARTIALLY_COMPLETED

        completed_at = self._clock.now()
        total_duration = int((time.monotonic() - start_time) * 1000)

        logger.info(
            "batch_run_completed",
            extra={
                "run_id": str(run_id),
                "task_type": task.task_type,
                "status": status.value,
                "total_items": len(items),
                "succeeded": succeeded,
                "failed": failed,
                "skipped": skipped,
                "duration_ms": total_duration,
            },
        )

        return BatchRunResult(
            run_id=run_id,
            task_type=task.task_type,
            status=status,
            total_items=len(items),
            succeeded=succeeded,
            failed=failed,
            skipped=skipped,
            item_results=tuple(item_results),
            reduced=reduced,
            summary=summary,
            error_summary=f"{failed} item(s) failed" if failed else None,
            started_at=now,
            completed_at=completed_at,
            duration_ms=total_duration,
        )
