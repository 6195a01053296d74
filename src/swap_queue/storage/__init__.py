"""Storage — durable key-value persistence (memory, Redis, SQL)."""

from __future__ import annotations

from swap_queue.storage.client import StorageBackend, StorageClient
from swap_queue.storage.memory import MemoryStorage

__all__ = ["MemoryStorage", "StorageBackend", "StorageClient"]
