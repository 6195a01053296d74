"""Event types published on the queue event bus."""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field
from typing import Any


class EventKind(enum.StrEnum):
    """Task and queue lifecycle events."""

    TASK_CREATED = "taskCreated"
    TASK_UPDATED = "taskUpdated"
    TASK_COMPLETED = "taskCompleted"
    TASK_FAILED = "taskFailed"
    MIGRATION_FINISHED = "migrationFinished"


@dataclass(frozen=True)
class QueueEvent:
    """Event envelope delivered to subscribers.

    ``content`` carries a task snapshot (camelCase dict) for task events and
    the migration report for ``migrationFinished``.
    """

    kind: EventKind
    task_id: str | None = None
    content: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict."""
        return asdict(self)
