"""Tests for the in-memory storage backend."""

from __future__ import annotations

import pytest

from swap_queue.config.settings import StorageConfig, StorageEngine
from swap_queue.errors.queue_errors import StorageError
from swap_queue.storage.memory import MemoryStorage


@pytest.fixture
def config() -> StorageConfig:
    return StorageConfig(engine=StorageEngine.MEMORY)


class TestMemoryStorage:
    """Test the dict-backed key-value store."""

    async def test_set_get(self, config: StorageConfig) -> None:
        storage = MemoryStorage(config)
        await storage.connect()

        await storage.set("tasks/a", "{}")
        assert await storage.get("tasks/a") == "{}"

    async def test_get_missing(self, config: StorageConfig) -> None:
        storage = MemoryStorage(config)
        await storage.connect()

        assert await storage.get("missing") is None

    async def test_delete_missing_is_noop(self, config: StorageConfig) -> None:
        storage = MemoryStorage(config)
        await storage.connect()

        await storage.delete("missing")
        await storage.set("k", "v")
        await storage.delete("k")
        assert await storage.get("k") is None

    async def test_keys_by_prefix_in_insertion_order(self, config: StorageConfig) -> None:
        storage = MemoryStorage(config)
        await storage.connect()

        await storage.set("tasks/b", "1")
        await storage.set("legacy", "[]")
        await storage.set("tasks/a", "2")

        assert await storage.keys("tasks/") == ["tasks/b", "tasks/a"]
        assert await storage.keys("") == ["tasks/b", "legacy", "tasks/a"]

    async def test_rejects_non_string_values(self, config: StorageConfig) -> None:
        storage = MemoryStorage(config)
        await storage.connect()

        with pytest.raises(StorageError, match="must be str"):
            await storage.set("k", b"bytes")  # type: ignore[arg-type]

    async def test_quota_blocks_new_keys_only(self, config: StorageConfig) -> None:
        storage = MemoryStorage(config, max_keys=2)
        await storage.connect()

        await storage.set("a", "1")
        await storage.set("b", "2")
        with pytest.raises(StorageError, match="quota exceeded") as exc_info:
            await storage.set("c", "3")
        assert exc_info.value.key == "c"

        # Overwriting an existing key is still allowed
        await storage.set("a", "updated")
        assert await storage.get("a") == "updated"

    async def test_quota_from_config(self) -> None:
        storage = MemoryStorage(StorageConfig(engine=StorageEngine.MEMORY, max_keys=1))
        await storage.connect()

        await storage.set("a", "1")
        with pytest.raises(StorageError):
            await storage.set("b", "2")

    async def test_shared_data_survives_reconnect(self, config: StorageConfig) -> None:
        data: dict[str, str] = {}
        first = MemoryStorage(config, data=data)
        await first.connect()
        await first.set("tasks/a", "x")
        await first.close()

        second = MemoryStorage(config, data=data)
        await second.connect()
        assert await second.get("tasks/a") == "x"
        assert second.data is data
