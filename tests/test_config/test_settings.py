"""Tests for the configuration system."""

from __future__ import annotations

import textwrap
from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

from swap_queue.config.settings import (
    AppConfig,
    MetricsConfig,
    MigrationConfig,
    SchedulerConfig,
    ServerConfig,
    StorageConfig,
    StorageEngine,
    _load_yaml,
)

if TYPE_CHECKING:
    from pathlib import Path

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


class TestDefaults:
    """Verify all default values are correct."""

    def test_server_defaults(self) -> None:
        cfg = ServerConfig()
        assert cfg.host == "127.0.0.1"
        assert cfg.port == 3010
        assert cfg.log_level == "info"

    def test_storage_defaults(self) -> None:
        cfg = StorageConfig()
        assert cfg.engine == StorageEngine.SQLITE
        assert cfg.dsn == "sqlite+aiosqlite:///./swap_queue.db"
        assert cfg.url == "redis://localhost:6379/0"
        assert cfg.key_prefix == ""
        assert cfg.max_keys == 0

    def test_migration_defaults(self) -> None:
        cfg = MigrationConfig()
        assert cfg.enabled is True
        assert cfg.legacy_key == "legacy"

    def test_scheduler_defaults(self) -> None:
        cfg = SchedulerConfig()
        assert cfg.max_concurrent_tasks == 8
        assert cfg.resume_interrupted is True

    def test_metrics_defaults(self) -> None:
        assert MetricsConfig().enabled is True

    def test_app_defaults(self) -> None:
        cfg = AppConfig()
        assert cfg.debug is False
        assert cfg.config_path == ""
        assert isinstance(cfg.storage, StorageConfig)
        assert isinstance(cfg.scheduler, SchedulerConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    def test_unknown_engine_rejected(self) -> None:
        with pytest.raises(ValidationError):
            StorageConfig(engine="mongo")

    def test_concurrency_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            SchedulerConfig(max_concurrent_tasks=0)

    def test_negative_quota_rejected(self) -> None:
        with pytest.raises(ValidationError):
            StorageConfig(max_keys=-1)


# ---------------------------------------------------------------------------
# Environment overrides
# ---------------------------------------------------------------------------


class TestEnvOverrides:
    def test_nested_storage_engine(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SWAPQUEUE_STORAGE__ENGINE", "redis")
        monkeypatch.setenv("SWAPQUEUE_STORAGE__URL", "redis://cache:6379/2")
        cfg = AppConfig()
        assert cfg.storage.engine == StorageEngine.REDIS
        assert cfg.storage.url == "redis://cache:6379/2"

    def test_scheduler_and_metrics(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SWAPQUEUE_SCHEDULER__MAX_CONCURRENT_TASKS", "2")
        monkeypatch.setenv("SWAPQUEUE_METRICS__ENABLED", "false")
        cfg = AppConfig()
        assert cfg.scheduler.max_concurrent_tasks == 2
        assert cfg.metrics.enabled is False

    def test_debug_flag(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SWAPQUEUE_DEBUG", "true")
        assert AppConfig().debug is True


# ---------------------------------------------------------------------------
# YAML
# ---------------------------------------------------------------------------


class TestYaml:
    def test_load_missing_file(self, tmp_path: Path) -> None:
        assert _load_yaml(tmp_path / "absent.yaml") == {}

    def test_load_non_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        assert _load_yaml(path) == {}

    def test_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            textwrap.dedent("""\
                debug: true
                storage:
                  engine: memory
                  key_prefix: "swapq:"
                scheduler:
                  max_concurrent_tasks: 3
                migration:
                  legacy_key: swaps
            """),
            encoding="utf-8",
        )
        cfg = AppConfig.from_yaml(path)
        assert cfg.debug is True
        assert cfg.storage.engine == StorageEngine.MEMORY
        assert cfg.storage.key_prefix == "swapq:"
        assert cfg.scheduler.max_concurrent_tasks == 3
        assert cfg.migration.legacy_key == "swaps"

    def test_env_wins_over_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            textwrap.dedent("""\
                storage:
                  engine: memory
                  key_prefix: "yaml:"
            """),
            encoding="utf-8",
        )
        monkeypatch.setenv("SWAPQUEUE_STORAGE__KEY_PREFIX", "env:")
        cfg = AppConfig.from_yaml(path)
        assert cfg.storage.engine == StorageEngine.MEMORY
        assert cfg.storage.key_prefix == "env:"

    def test_config_path_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("migration:\n  enabled: false\n", encoding="utf-8")
        monkeypatch.setenv("SWAPQUEUE_CONFIG_PATH", str(path))
        assert AppConfig().migration.enabled is False
