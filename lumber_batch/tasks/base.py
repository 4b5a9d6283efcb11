"""
BatchTask protocol, supporting types, and TaskRegistry.

Contract:
    ``BatchTask`` defines the interface every batch task must implement:
    a map step (``execute_item``) that emits key/value pairs, a
    ``reduce`` per key, and a ``summarize`` over the reduced values.
    ``TaskRegistry`` stores registered tasks keyed by ``task_type``.
    ``default_task_registry()`` returns a registry holding the lumber tasks.

Architecture:
    lumber_batch/tasks.  Imports from lumber_batch.domain (frozen DTOs);
    concrete tasks import engines, services and models.

Invariants enforced:
    - Task registry: one task per ``task_type`` string.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sqlalchemy.orm import Session

from lumber_batch.domain.types import BatchItemStatus

if TYPE_CHECKING:
    from lumber_config.provider import SettingsProvider


# =============================================================================
# Supporting DTOs
# =============================================================================


@dataclass(frozen=True)
class BatchItemInput:
    """Input for a single batch item.

    Created by ``BatchTask.prepare_items()``.
    """

    item_index: int
    item_key: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BatchTaskResult:
    """Result returned by ``BatchTask.execute_item()``.

    ``emitted`` carries the (key, value) pairs for the reduce phase.
    """

    status: BatchItemStatus
    emitted: tuple[tuple[str, Any], ...] = ()
    result_data: dict[str, Any] | None = None
    error_code: str | None = None
    error_message: str | None = None

    @classmethod
    def succeeded(cls, *emitted: tuple[str, Any], **result_data: Any) -> BatchTaskResult:
        return cls(
            status=BatchItemStatus.SUCCEEDED,
            emitted=tuple(emitted),
            result_data=result_data or None,
        )

    @classmethod
    def failed(cls, error_code: str, error_message: str) -> BatchTaskResult:
        return cls(
            status=BatchItemStatus.FAILED,
            error_code=error_code,
            error_message=error_message,
        )


# =============================================================================
# BatchTask Protocol
# =============================================================================


@runtime_checkable
class BatchTask(Protocol):
    """Protocol defining the interface for batch task implementations.

    Each implementation handles one ``task_type`` (e.g., "tally.reconciliation").

    Contract:
        - ``task_type``: unique string key registered in TaskRegistry.
        - ``description``: human-readable label for logs.
        - ``prepare_items()``: queries eligible records, returns immutable tuple.
        - ``execute_item()``: processes ONE item within a SAVEPOINT and
          returns the pairs it emits.  Never accumulates into shared state.
        - ``reduce()``: folds all values emitted under one key.
        - ``summarize()``: builds the run report from the reduced values.

    Non-goals:
        - Does NOT manage transactions -- the executor owns SAVEPOINT lifecycle.
    """

    @property
    def task_type(self) -> str: ...

    @property
    def description(self) -> str: ...

    def prepare_items(
        self,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> tuple[BatchItemInput, ...]:
        """Query eligible items for this run.

        Args:
            parameters: Run-level parameters.
            session: Database session for querying eligible records.
            as_of: Clock-injected timestamp for determinism.

        Returns:
            Immutable tuple of BatchItemInput, one per item to process.
        """
        ...

    def execute_item(
        self,
        item: BatchItemInput,
        parameters: dict[str, Any],
        session: Session,
        as_of: datetime,
    ) -> BatchTaskResult:
        """Execute a single batch item within a SAVEPOINT.

        Args:
            item: The item to process.
            parameters: Run-level parameters.
            session: Database session (SAVEPOINT active).
            as_of: Clock-injected timestamp.

        Returns:
            BatchTaskResult with status, emitted pairs and optional error info.
        """
        ...

    def reduce(self, key: str, values: Sequence[Any]) -> Any:
        """Fold every value emitted under ``key``."""
        ...

    def summarize(self, reduced: dict[str, Any]) -> dict[str, Any]:
        """Final report for the run."""
        ...


# =============================================================================
# TaskRegistry
# =============================================================================


class TaskRegistry:
    """Registry mapping task_type strings to BatchTask implementations.

    Contract:
        - ``register()`` adds a task; raises ValueError on duplicate.
        - ``get()`` retrieves by task_type; raises KeyError if missing.
        - ``list_tasks()`` returns all registered task_type strings.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, BatchTask] = {}

    def register(self, task: BatchTask) -> None:
        """Register a batch task implementation.

        Raises:
            ValueError: If a task with the same task_type is already registered.
        """
        if task.task_type in self._tasks:
            raise ValueError(
                f"Task type '{task.task_type}' is already registered"
            )
        self._tasks[task.task_type] = task

    def get(self, task_type: str) -> BatchTask:
        """Retrieve a registered task by task_type.

        Raises:
            KeyError: If no task is registered for the given task_type.
        """
        try:
            return self._tasks[task_type]
        except KeyError:
            raise KeyError(
                f"No task registered for type '{task_type}'. "
                f"Available: {sorted(self._tasks.keys())}"
            ) from None

    def list_tasks(self) -> tuple[str, ...]:
        """Return all registered task_type strings, sorted."""
        return tuple(sorted(self._tasks.keys()))

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_type: str) -> bool:
        return task_type in self._tasks


def default_task_registry(settings: SettingsProvider) -> TaskRegistry:
    """Registry holding the tally reconciliation and yield anomaly tasks."""
    from lumber_batch.tasks.tally_tasks import TallyReconciliationTask
    from lumber_batch.tasks.yield_tasks import YieldAnomalyTask

    registry = TaskRegistry()
    registry.register(TallyReconciliationTask(settings))
    registry.register(YieldAnomalyTask(settings))
    return registry
