"""In-memory storage backend (development/testing).

Data lives in a plain dict. Passing the same dict to several instances
simulates one durable store surviving a reload.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from swap_queue.errors.queue_errors import StorageError

if TYPE_CHECKING:
    from swap_queue.config.settings import StorageConfig


class MemoryStorage:
    """Process-local key-value store with an optional key quota."""

    def __init__(
        self,
        config: StorageConfig,
        *,
        data: dict[str, str] | None = None,
        max_keys: int | None = None,
    ) -> None:
        """Initialize in-memory storage.

        Args:
            config: Storage configuration (``max_keys`` is read from it).
            data: Backing dict. A fresh one is created when omitted.
            max_keys: Overrides ``config.max_keys``. 0 or None = unlimited.
        """
        self._config = config
        self._data: dict[str, str] = data if data is not None else {}
        self._max_keys = max_keys if max_keys is not None else config.max_keys
        self._open = False

    @property
    def data(self) -> dict[str, str]:
        """The backing dict."""
        return self._data

    async def connect(self) -> None:  # noqa: ASYNC910
        """Connect (no-op for in-memory)."""
        self._open = True

    async def close(self) -> None:  # noqa: ASYNC910
        """Close. The data is kept so a later connect sees it again."""
        self._open = False

    async def get(self, key: str) -> str | None:  # noqa: ASYNC910
        """Get a value, or None if absent."""
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:  # noqa: ASYNC910
        """Store a value.

        Raises:
            StorageError: If storing a new key would exceed the quota.
        """
        if not isinstance(value, str):
            msg = f"Value for {key!r} must be str, got {type(value).__name__}"
            raise StorageError(msg, key=key)
        if self._max_keys and key not in self._data and len(self._data) >= self._max_keys:
            msg = f"storage quota exceeded ({self._max_keys} keys)"
            raise StorageError(msg, key=key)
        self._data[key] = value

    async def delete(self, key: str) -> None:  # noqa: ASYNC910
        """Delete a key."""
        self._data.pop(key, None)

    async def keys(self, prefix: str) -> list[str]:  # noqa: ASYNC910
        """List keys with the given prefix, in insertion order."""
        return [k for k in self._data if k.startswith(prefix)]
