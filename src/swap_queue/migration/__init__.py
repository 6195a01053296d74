"""Migration — one-time legacy blob to per-task record transfer."""

from __future__ import annotations

from swap_queue.migration.legacy import convert_legacy_entry, parse_legacy_blob
from swap_queue.migration.runner import MigrationContext, MigrationReport, MigrationRunner

__all__ = [
    "MigrationContext",
    "MigrationReport",
    "MigrationRunner",
    "convert_legacy_entry",
    "parse_legacy_blob",
]
