"""Application settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``SWAPQUEUE_``, nested via ``__``)
2. YAML config file (``SWAPQUEUE_CONFIG_PATH`` env var or ``AppConfig.from_yaml``)
3. Defaults defined here
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Enums for validated choices
# ---------------------------------------------------------------------------


class StorageEngine(enum.StrEnum):
    """Supported durable storage backends."""

    MEMORY = "memory"
    REDIS = "redis"
    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class ServerConfig(BaseSettings):
    """HTTP server settings."""

    model_config = SettingsConfigDict(
        env_prefix="SWAPQUEUE_SERVER__",
        case_sensitive=False,
    )

    host: str = "127.0.0.1"
    port: int = 3010
    log_level: str = "info"


class StorageConfig(BaseSettings):
    """Durable key-value storage settings."""

    model_config = SettingsConfigDict(
        env_prefix="SWAPQUEUE_STORAGE__",
        case_sensitive=False,
    )

    engine: StorageEngine = Field(
        default=StorageEngine.SQLITE,
        description="Storage backend: memory, redis, sqlite or postgresql",
    )
    url: str = "redis://localhost:6379/0"
    dsn: str = Field(
        default="sqlite+aiosqlite:///./swap_queue.db",
        description="Async SQLAlchemy connection string for SQL backends",
    )
    key_prefix: str = ""
    max_keys: int = Field(default=0, ge=0, description="Memory backend quota, 0 = unlimited")
    max_connections: int = 10
    debug_sql: bool = False


class MigrationConfig(BaseSettings):
    """Legacy storage migration settings."""

    model_config = SettingsConfigDict(
        env_prefix="SWAPQUEUE_MIGRATION__",
        case_sensitive=False,
    )

    enabled: bool = True
    legacy_key: str = "legacy"


class SchedulerConfig(BaseSettings):
    """Task scheduler settings."""

    model_config = SettingsConfigDict(
        env_prefix="SWAPQUEUE_SCHEDULER__",
        case_sensitive=False,
    )

    max_concurrent_tasks: int = Field(default=8, ge=1)
    resume_interrupted: bool = True


class MetricsConfig(BaseSettings):
    """Prometheus metrics settings."""

    model_config = SettingsConfigDict(
        env_prefix="SWAPQUEUE_METRICS__",
        case_sensitive=False,
    )

    enabled: bool = True


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file and return its contents as a dict.

    Returns an empty dict if the file doesn't exist or is empty.
    """
    p = Path(path)
    if not p.exists():
        return {}
    text = p.read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Loads settings from environment variables (``SWAPQUEUE_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="SWAPQUEUE_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    debug: bool = False
    version: str = "0.1.0"
    config_path: str = ""

    server: ServerConfig = Field(default_factory=ServerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    migration: MigrationConfig = Field(default_factory=MigrationConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Merge YAML config file contents under the env var overrides."""
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        yaml_data = _load_yaml(config_path)
        # YAML values serve as defaults; env vars (already in *values*) win.
        for key, val in yaml_data.items():
            if key not in values or values[key] is None:
                values[key] = val
            elif isinstance(val, dict) and isinstance(values.get(key), dict):
                values[key] = {**val, **values[key]}
        return values

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Construct ``AppConfig`` loading defaults from a YAML file.

        Environment variables still override YAML values.
        """
        return cls(config_path=str(path))
