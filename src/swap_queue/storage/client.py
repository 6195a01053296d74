"""Storage client abstraction with memory, Redis and SQL backends.

The client is a pure durability boundary: no caching, and every backend
failure surfaces as :class:`StorageError`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from swap_queue.config.settings import StorageEngine
from swap_queue.errors.queue_errors import StorageError, StorageUnavailableError

if TYPE_CHECKING:
    from swap_queue.config.settings import StorageConfig

logger = logging.getLogger(__name__)


class StorageClient:
    """Storage abstraction that delegates to a configured key-value backend."""

    def __init__(self, config: StorageConfig, *, backend: StorageBackend | None = None) -> None:
        """Initialize storage client with configuration.

        Args:
            config: Storage configuration with engine type and connection params.
            backend: Pre-built backend to use instead of one derived from *config*.
        """
        self._config = config
        self._injected = backend
        self._backend: StorageBackend | None = None
        self._connected = False

    async def connect(self) -> None:
        """Connect to the storage backend.

        Raises:
            ValueError: If the storage engine type is invalid.
            StorageUnavailableError: If the backend cannot be reached.
        """
        from swap_queue.storage.memory import MemoryStorage
        from swap_queue.storage.redis import RedisStorage
        from swap_queue.storage.sql import SQLStorage

        engine = str(self._config.engine).lower()

        if self._injected is not None:
            backend: StorageBackend = self._injected
        elif engine == StorageEngine.REDIS:
            backend = RedisStorage(self._config)
        elif engine == StorageEngine.MEMORY:
            backend = MemoryStorage(self._config)
        elif engine in (StorageEngine.SQLITE, StorageEngine.POSTGRESQL):
            backend = SQLStorage(self._config)
        else:
            msg = f"Unsupported storage engine: {engine}"
            raise ValueError(msg)

        try:
            await backend.connect()
        except StorageUnavailableError:
            raise
        except Exception as e:
            msg = f"Storage backend {engine} is unreachable"
            raise StorageUnavailableError(msg) from e

        self._backend = backend
        self._connected = True
        logger.info("Storage connected engine=%s prefix=%r", engine, self._config.key_prefix)

    async def close(self) -> None:
        """Close the storage connection (idempotent)."""
        if self._backend is not None:
            await self._backend.close()
            self._backend = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        """Check if the storage is connected."""
        return self._connected and self._backend is not None

    async def get(self, key: str) -> str | None:
        """Get a value, or None if the key is absent.

        Raises:
            RuntimeError: If not connected.
            StorageError: If the backend read fails.
        """
        backend = self._ensure_connected()
        try:
            return await backend.get(self._full_key(key))
        except StorageError:
            raise
        except Exception as e:
            msg = f"Failed to read {key!r}"
            raise StorageError(msg, key=key) from e

    async def set(self, key: str, value: str) -> None:
        """Store a value.

        Raises:
            RuntimeError: If not connected.
            StorageError: If the backend write fails (quota, I/O, unavailable).
        """
        backend = self._ensure_connected()
        try:
            await backend.set(self._full_key(key), value)
        except StorageError:
            raise
        except Exception as e:
            msg = f"Failed to write {key!r}"
            raise StorageError(msg, key=key) from e

    async def delete(self, key: str) -> None:
        """Delete a key. Deleting an absent key is not an error.

        Raises:
            RuntimeError: If not connected.
            StorageError: If the backend delete fails.
        """
        backend = self._ensure_connected()
        try:
            await backend.delete(self._full_key(key))
        except StorageError:
            raise
        except Exception as e:
            msg = f"Failed to delete {key!r}"
            raise StorageError(msg, key=key) from e

    async def exists(self, key: str) -> bool:
        """Check if a key exists.

        Raises:
            RuntimeError: If not connected.
            StorageError: If the backend lookup fails.
        """
        return await self.get(key) is not None

    async def keys(self, prefix: str = "") -> list[str]:
        """List keys starting with *prefix* (without the configured key prefix).

        Raises:
            RuntimeError: If not connected.
            StorageError: If the backend scan fails.
        """
        backend = self._ensure_connected()
        try:
            found = await backend.keys(self._full_key(prefix))
        except StorageError:
            raise
        except Exception as e:
            msg = f"Failed to list keys with prefix {prefix!r}"
            raise StorageError(msg, key=prefix) from e
        strip = len(self._config.key_prefix)
        return [k[strip:] for k in found]

    def _full_key(self, key: str) -> str:
        return f"{self._config.key_prefix}{key}"

    def _ensure_connected(self) -> StorageBackend:
        """Return the backend or raise RuntimeError if not connected."""
        if not self._connected or self._backend is None:
            msg = "Storage not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._backend


class StorageBackend(Protocol):
    """Protocol for storage backend implementations."""

    async def connect(self) -> None: ...
    async def close(self) -> None: ...
    async def get(self, key: str) -> str | None: ...
    async def set(self, key: str, value: str) -> None: ...
    async def delete(self, key: str) -> None: ...
    async def keys(self, prefix: str) -> list[str]: ...
