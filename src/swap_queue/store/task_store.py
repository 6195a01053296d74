"""Task store — in-memory authoritative view of the queue.

Write-through over the storage client: every ``upsert`` updates memory first,
then storage. A storage failure is re-raised to the caller, but the in-memory
copy stays updated so the session keeps working.

All reads return copies; callers mutate a copy and hand it back to ``upsert``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from swap_queue.errors.queue_errors import StorageError
from swap_queue.models.task import Task, TaskStatus
from swap_queue.storage.keys import TASK_PREFIX, task_id_from_key, task_key

if TYPE_CHECKING:
    from swap_queue.collaborators.ports import DiagnosticsSink
    from swap_queue.storage.client import StorageClient

logger = logging.getLogger(__name__)


class TaskStore:
    """In-memory task map synchronized to durable storage."""

    def __init__(
        self,
        storage: StorageClient,
        *,
        diagnostics: DiagnosticsSink | None = None,
    ) -> None:
        self._storage = storage
        self._diagnostics = diagnostics
        self._tasks: dict[str, Task] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    async def load(self) -> int:
        """Read every ``tasks/*`` record into memory.

        Corrupt records are skipped and reported. Display order is restored
        by ``created_at``.

        Returns:
            Number of tasks loaded.

        Raises:
            StorageError: If the key listing itself fails.
        """
        keys = await self._storage.keys(TASK_PREFIX)
        loaded: list[Task] = []
        for key in keys:
            try:
                raw = await self._storage.get(key)
            except StorageError as exc:
                self._report("task record unreadable", key=key, error=repr(exc))
                continue
            if raw is None:
                continue
            try:
                task = Task.from_json(raw)
            except ValidationError as exc:
                self._report("task record corrupt", key=key, error=str(exc))
                continue
            if task.id != task_id_from_key(key):
                self._report("task record id mismatch", key=key, task_id=task.id)
                continue
            loaded.append(task)

        loaded.sort(key=lambda t: t.created_at)
        self._tasks = {t.id: t for t in loaded}
        logger.info("TaskStore loaded %d tasks (%d keys)", len(loaded), len(keys))
        return len(loaded)

    async def upsert(self, task: Task) -> None:
        """Insert or replace *task* in memory and storage.

        Raises:
            StorageError: If the durable write fails (memory is still updated).
        """
        stored = task.model_copy(deep=True)
        self._tasks[stored.id] = stored
        await self._storage.set(task_key(stored.id), stored.to_json())
        logger.debug("Task upserted id=%s status=%s", stored.id, stored.status)

    def get(self, task_id: str) -> Task | None:
        """Return a copy of the task, or None."""
        task = self._tasks.get(task_id)
        return task.model_copy(deep=True) if task is not None else None

    def status_of(self, task_id: str) -> TaskStatus | None:
        """Current status without copying the task."""
        task = self._tasks.get(task_id)
        return task.status if task is not None else None

    def list(self) -> list[Task]:
        """All tasks in insertion order (copies)."""
        return [t.model_copy(deep=True) for t in self._tasks.values()]

    def list_by_status(self, *statuses: TaskStatus) -> list[Task]:
        """Tasks whose status is one of *statuses*, in insertion order (copies)."""
        wanted = set(statuses)
        return [t.model_copy(deep=True) for t in self._tasks.values() if t.status in wanted]

    async def remove(self, task_id: str) -> bool:
        """Delete a task from memory and storage.

        Returns:
            False if the task was unknown.

        Raises:
            StorageError: If the durable delete fails (memory is still updated).
        """
        if self._tasks.pop(task_id, None) is None:
            return False
        await self._storage.delete(task_key(task_id))
        logger.info("Task removed id=%s", task_id)
        return True

    def _report(self, message: str, **context: object) -> None:
        logger.warning("%s %s", message, context)
        if self._diagnostics is not None:
            self._diagnostics.report(message, context)
