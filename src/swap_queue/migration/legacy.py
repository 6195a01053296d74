"""Legacy swap record conversion.

Before per-task records existed, all swaps lived in one JSON array stored
under a single key. Each entry looks like::

    {
        "requestId": "0b7c...",
        "status": "success" | "failed" | "running",
        "creationTime": "1700000000000",     # ms since epoch
        "finishTime": "1700000060000",       # optional
        "extraMessage": "...",               # optional
        "steps": [{"id": 1, "status": "success",
                   "fromBlockchain": "ETH", "toBlockchain": "BSC"}],
        "wallets": {...}                     # optional, kept in payload
    }

Legacy records always describe finished swaps. Anything not marked
``success`` becomes FAILED, so migration never yields a resumable task.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from swap_queue.errors.queue_errors import MigrationEntryError
from swap_queue.models.task import Task, TaskStatus, TaskStep

LEGACY_TASK_TYPE = "legacy_swap"
LEGACY_SUCCESS = "success"
INTERRUPTED_MESSAGE = "swap did not finish before storage migration"


def parse_legacy_blob(raw: str) -> list[Any]:
    """Decode the legacy blob into its list of entries.

    Raises:
        ValueError: If the blob is not a JSON array.
    """
    data = json.loads(raw)
    if not isinstance(data, list):
        msg = f"legacy blob must be a JSON array, got {type(data).__name__}"
        raise ValueError(msg)
    return data


def _parse_millis(value: Any, *, field: str, index: int, entry_id: str) -> datetime:
    if isinstance(value, bool) or value is None:
        msg = f"{field} is missing"
        raise MigrationEntryError(msg, index=index, entry_id=entry_id)
    try:
        millis = float(value)
        return datetime.fromtimestamp(millis / 1000.0, tz=UTC)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        msg = f"{field} is not a millisecond timestamp: {value!r}"
        raise MigrationEntryError(msg, index=index, entry_id=entry_id) from e


def _convert_step(raw: Any, position: int, *, index: int, entry_id: str) -> TaskStep:
    if not isinstance(raw, dict):
        msg = f"step {position} is not an object"
        raise MigrationEntryError(msg, index=index, entry_id=entry_id)
    source = raw.get("fromBlockchain")
    target = raw.get("toBlockchain")
    name = f"{source}->{target}" if source and target else str(raw.get("id", position))
    return TaskStep(name=name, done=raw.get("status") == LEGACY_SUCCESS, result=raw)


def convert_legacy_entry(entry: Any, index: int) -> Task:
    """Build a terminal current-shape task from one legacy entry.

    Raises:
        MigrationEntryError: If the entry is malformed.
    """
    if not isinstance(entry, dict):
        msg = f"entry is not an object ({type(entry).__name__})"
        raise MigrationEntryError(msg, index=index)

    entry_id = entry.get("requestId")
    if not isinstance(entry_id, str) or not entry_id.strip():
        msg = "requestId is missing"
        raise MigrationEntryError(msg, index=index)
    entry_id = entry_id.strip()

    created_at = _parse_millis(
        entry.get("creationTime"), field="creationTime", index=index, entry_id=entry_id
    )
    finish_raw = entry.get("finishTime")
    updated_at = (
        _parse_millis(finish_raw, field="finishTime", index=index, entry_id=entry_id)
        if finish_raw not in (None, "")
        else created_at
    )

    raw_steps = entry.get("steps") or []
    if not isinstance(raw_steps, list):
        msg = "steps is not a list"
        raise MigrationEntryError(msg, index=index, entry_id=entry_id)
    steps = [
        _convert_step(s, i, index=index, entry_id=entry_id) for i, s in enumerate(raw_steps)
    ]

    succeeded = entry.get("status") == LEGACY_SUCCESS
    last_error = None
    if not succeeded:
        extra = entry.get("extraMessage")
        last_error = extra if isinstance(extra, str) and extra else INTERRUPTED_MESSAGE

    return Task(
        id=entry_id,
        type=LEGACY_TASK_TYPE,
        status=TaskStatus.COMPLETED if succeeded else TaskStatus.FAILED,
        steps=steps,
        created_at=created_at,
        updated_at=updated_at,
        last_error=last_error,
        payload={"legacy": entry},
    )
