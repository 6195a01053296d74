"""QueueError — base exception class and the queue error taxonomy."""

from __future__ import annotations

from typing import Any


class QueueError(Exception):
    """Base error for all swap queue operations.

    Attributes:
        message: Human-readable error description.
        status_code: Suggested HTTP status code.
        code: Machine-readable error code string.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        code: str = "queue-error",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class StorageError(QueueError):
    """Durable storage failure (I/O, quota, serialization). Retryable by the caller."""

    def __init__(self, message: str, *, key: str | None = None) -> None:
        super().__init__(message, status_code=503, code="storage-error")
        self.key = key


class StorageUnavailableError(StorageError):
    """No storage backend is reachable. Fatal at startup."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.code = "storage-unavailable"


class MigrationEntryError(QueueError):
    """One historical record could not be converted. Skipped, non-fatal."""

    def __init__(self, message: str, *, index: int, entry_id: str | None = None) -> None:
        super().__init__(message, status_code=422, code="migration-entry-invalid")
        self.index = index
        self.entry_id = entry_id

    def context(self) -> dict[str, Any]:
        """Diagnostics context for this failure."""
        return {"index": self.index, "entry_id": self.entry_id, "error": self.message}


class StepExecutionError(QueueError):
    """Task-specific step failure. Terminal for that task."""

    def __init__(self, message: str, *, task_id: str = "", step_index: int | None = None) -> None:
        super().__init__(message, status_code=422, code="step-execution-failed")
        self.task_id = task_id
        self.step_index = step_index


class TaskNotResumable(QueueError):
    """``retry_task`` was called for a completed, failed or running task."""

    def __init__(self, task_id: str, status: str) -> None:
        super().__init__(
            f"task {task_id} cannot be retried in status {status}",
            status_code=409,
            code="task-not-resumable",
        )
        self.task_id = task_id
        self.status = status


class TaskNotFound(QueueError):
    """No task with the given id exists in the queue."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"task {task_id} not found", status_code=404, code="task-not-found")
        self.task_id = task_id


class ConnectError(QueueError):
    """Wallet collaborator failed to connect a wallet."""

    def __init__(self, message: str, *, wallet_type: str) -> None:
        super().__init__(message, status_code=502, code="wallet-connect-failed")
        self.wallet_type = wallet_type
