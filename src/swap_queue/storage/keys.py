"""Storage key layout.

- ``legacy``      — single blob holding the pre-migration swap collection
- ``tasks/{id}``  — one record per task
- ``migration``   — the persisted ``MigrationRecord``
"""

from __future__ import annotations

TASK_PREFIX = "tasks/"
DEFAULT_LEGACY_KEY = "legacy"
MIGRATION_KEY = "migration"


def task_key(task_id: str) -> str:
    """Return the storage key for a task id."""
    return f"{TASK_PREFIX}{task_id}"


def task_id_from_key(key: str) -> str:
    """Inverse of :func:`task_key`."""
    return key[len(TASK_PREFIX) :] if key.startswith(TASK_PREFIX) else key
