"""Configuration — pydantic-settings models."""

from __future__ import annotations

from swap_queue.config.settings import AppConfig, StorageConfig, StorageEngine

__all__ = ["AppConfig", "StorageConfig", "StorageEngine"]
