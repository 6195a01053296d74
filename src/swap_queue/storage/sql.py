"""SQL storage backend — async SQLAlchemy over a single key-value table.

Provides async engine creation with support for:
- SQLite (aiosqlite driver)
- PostgreSQL (asyncpg driver)
- Configurable pool sizes and echo/debug settings
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String, Text, delete, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

if TYPE_CHECKING:
    from swap_queue.config.settings import StorageConfig


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for the storage table."""


class KVRecord(Base):
    """One stored key."""

    __tablename__ = "kv_store"

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(tz=UTC),
    )


def create_engine(config: StorageConfig) -> AsyncEngine:
    """Create an async SQLAlchemy engine from storage configuration.

    Args:
        config: Storage configuration with DSN, pool settings, etc.

    Returns:
        A configured ``AsyncEngine`` ready for use.
    """
    kwargs: dict = {
        "echo": config.debug_sql,
    }

    # SQLite doesn't support pool settings in the same way
    if "sqlite" not in config.dsn:
        kwargs["pool_size"] = config.max_connections
        kwargs["pool_pre_ping"] = True

    return create_async_engine(config.dsn, **kwargs)


class SQLStorage:
    """Key-value storage persisted in a SQL table.

    Usage::

        store = SQLStorage(config)
        await store.connect()
        await store.set("tasks/abc", "{...}")
        await store.close()
    """

    def __init__(self, config: StorageConfig) -> None:
        self._config = config
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    async def connect(self) -> None:
        """Create the engine and the ``kv_store`` table if missing."""
        self._engine = create_engine(self._config)
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Dispose the engine and release all connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    def _session(self) -> AsyncSession:
        if self._session_factory is None:
            msg = "SQL storage is not open. Call connect() first."
            raise RuntimeError(msg)
        return self._session_factory()

    async def get(self, key: str) -> str | None:
        """Get a value, or None if absent."""
        async with self._session() as session:
            record = await session.get(KVRecord, key)
            return record.value if record is not None else None

    async def set(self, key: str, value: str) -> None:
        """Insert or replace a value."""
        async with self._session() as session:
            await session.merge(KVRecord(key=key, value=value, updated_at=datetime.now(tz=UTC)))
            await session.commit()

    async def delete(self, key: str) -> None:
        """Delete a key."""
        async with self._session() as session:
            await session.execute(delete(KVRecord).where(KVRecord.key == key))
            await session.commit()

    async def keys(self, prefix: str) -> list[str]:
        """List keys with the given prefix, ordered by key."""
        stmt = select(KVRecord.key).order_by(KVRecord.key)
        if prefix:
            stmt = stmt.where(KVRecord.key.startswith(prefix, autoescape=True))
        async with self._session() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())
