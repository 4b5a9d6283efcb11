"""
Batch task implementations and the task registry.

    from lumber_batch.tasks import default_task_registry

    registry = default_task_registry(settings)
    registry.list_tasks()  # ("tally.reconciliation", "yield.anomaly_detection")
"""

from lumber_batch.tasks.base import (
    BatchItemInput,
    BatchTask,
    BatchTaskResult,
    TaskRegistry,
    default_task_registry,
)

__all__ = [
    "BatchItemInput",
    "BatchTask",
    "BatchTaskResult",
    "TaskRegistry",
    "default_task_registry",
]
