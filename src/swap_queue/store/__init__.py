"""Task store — in-memory queue backed by durable storage."""

from __future__ import annotations

from swap_queue.store.task_store import TaskStore

__all__ = ["TaskStore"]
