"""
lumber_batch.domain.types -- Pure frozen dataclasses for the batch system.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.

Invariants enforced:
    - All DTOs are immutable.
    - A run's counters always satisfy succeeded + failed + skipped ==
      total_items.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


# =============================================================================
# Status enums
# =============================================================================


class BatchRunStatus(str, Enum):
    """Run-level outcome."""

    COMPLETED = "completed"  # No item failed
    FAILED = "failed"  # Nothing succeeded, or items could not be prepared
    PARTIALLY_COMPLETED = "partially_completed"  # Some items failed


class BatchItemStatus(str, Enum):
    """Per-item outcome within a run."""

    SUCCEEDED = "succeeded"  # Processed; emissions kept, SAVEPOINT released
    FAILED = "failed"  # Processing failed; SAVEPOINT rolled back
    SKIPPED = "skipped"  # Intentionally skipped; SAVEPOINT rolled back


# =============================================================================
# Result DTOs
# =============================================================================


@dataclass(frozen=True)
class BatchItemResult:
    """Immutable result of processing a single batch item.

    Each item runs in its own SAVEPOINT -- failure of one item does not
    abort the run.  ``emitted`` holds the key/value pairs the map step
    produced; they reach the reduce phase only when the item succeeded.
    """

    item_index: int  # 0-indexed position in the run
    item_key: str  # Business identifier (e.g., tally number, entry id)
    status: BatchItemStatus
    error_code: str | None = None
    error_message: str | None = None
    result_data: dict[str, Any] | None = None
    emitted: tuple[tuple[str, Any], ...] = ()
    duration_ms: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class BatchRunResult:
    """Immutable result of one complete run.

    Returned by ``BatchExecutor.run()``.  ``reduced`` maps each emitted key
    to the task's reduction of its values; ``summary`` is the task's final
    report built from ``reduced``.
    """

    run_id: UUID
    task_type: str
    status: BatchRunStatus
    total_items: int
    succeeded: int
    failed: int
    skipped: int
    item_results: tuple[BatchItemResult, ...] = ()
    reduced: dict[str, Any] = field(default_factory=dict)
    summary: dict[str, Any] = field(default_factory=dict)
    error_summary: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0

    @property
    def failed_items(self) -> tuple[BatchItemResult, ...]:
        return tuple(r for r in self.item_results if r.status is BatchItemStatus.FAILED)
