"""Error taxonomy for the swap queue."""

from __future__ import annotations

from swap_queue.errors.queue_errors import (
    ConnectError,
    MigrationEntryError,
    QueueError,
    StepExecutionError,
    StorageError,
    StorageUnavailableError,
    TaskNotFound,
    TaskNotResumable,
)

__all__ = [
    "ConnectError",
    "MigrationEntryError",
    "QueueError",
    "StepExecutionError",
    "StorageError",
    "StorageUnavailableError",
    "TaskNotFound",
    "TaskNotResumable",
]
