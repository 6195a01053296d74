"""Migration runner — one-time transfer of the legacy blob into task records.

Guarantees:
- Entry check on the persisted ``MigrationRecord``; a finished migration is a no-op.
- A process-scoped latch (``MigrationContext``) is set before the first await,
  so duplicate concurrent calls share the first call's run.
- A malformed entry is reported and skipped; the rest still migrate.
- ``MigrationRecord.done`` is written once, after every entry was attempted.
- The legacy blob is never deleted.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from swap_queue.errors.queue_errors import MigrationEntryError, StorageError
from swap_queue.events.events import EventKind, QueueEvent
from swap_queue.migration.legacy import convert_legacy_entry, parse_legacy_blob
from swap_queue.models.task import MigrationRecord, utc_now
from swap_queue.storage.keys import DEFAULT_LEGACY_KEY, MIGRATION_KEY

if TYPE_CHECKING:
    from swap_queue.collaborators.ports import DiagnosticsSink
    from swap_queue.events.bus import EventBus
    from swap_queue.metrics.collector import QueueMetrics
    from swap_queue.storage.client import StorageClient
    from swap_queue.store.task_store import TaskStore

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    """Outcome of one migration call."""

    migrated: int = 0
    skipped: int = 0
    errors: list[MigrationEntryError] = field(default_factory=list)
    write_failures: int = 0
    already_done: bool = False
    marked_done: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "migrated": self.migrated,
            "skipped": self.skipped,
            "errors": [e.context() for e in self.errors],
            "writeFailures": self.write_failures,
            "alreadyDone": self.already_done,
            "markedDone": self.marked_done,
        }


@dataclass
class MigrationContext:
    """Process-scoped migration state, owned by the queue manager.

    ``in_progress`` is the latch: it holds the running migration's future
    from the moment a run starts until it finishes.
    """

    in_progress: asyncio.Future[MigrationReport] | None = None
    runs: int = 0


class MigrationRunner:
    """Moves legacy swap records into per-task storage exactly once."""

    def __init__(
        self,
        storage: StorageClient,
        store: TaskStore,
        bus: EventBus,
        context: MigrationContext,
        *,
        legacy_key: str = DEFAULT_LEGACY_KEY,
        diagnostics: DiagnosticsSink | None = None,
        metrics: QueueMetrics | None = None,
    ) -> None:
        self._storage = storage
        self._store = store
        self._bus = bus
        self._context = context
        self._legacy_key = legacy_key
        self._diagnostics = diagnostics
        self._metrics = metrics

    async def is_done(self) -> bool:
        """Whether the persisted record says migration finished."""
        return (await self._read_record()).done

    async def run(self) -> MigrationReport:
        """Run the migration, or join the one already in progress."""
        pending = self._context.in_progress
        if pending is not None:
            logger.debug("Migration already in progress; waiting for it")
            return await asyncio.shield(pending)

        future: asyncio.Future[MigrationReport] = asyncio.get_running_loop().create_future()
        self._context.in_progress = future
        try:
            report = await self._run_once()
        except BaseException as exc:
            if isinstance(exc, asyncio.CancelledError):
                future.cancel()
            else:
                future.set_exception(exc)
                # Mark retrieved; the caller gets the exception directly.
                future.exception()
            raise
        else:
            future.set_result(report)
            return report
        finally:
            self._context.in_progress = None

    async def _run_once(self) -> MigrationReport:
        try:
            record = await self._read_record()
        except StorageError as exc:
            self._report("migration record unreadable; migration skipped", error=exc.message)
            return MigrationReport()
        if record.done:
            return MigrationReport(already_done=True)

        self._context.runs += 1
        report = MigrationReport()

        try:
            raw = await self._storage.get(self._legacy_key)
        except StorageError as exc:
            self._report("legacy blob unreadable; migration skipped", error=exc.message)
            return report

        entries: list[Any] = []
        if raw is not None:
            try:
                entries = parse_legacy_blob(raw)
            except ValueError as exc:
                err = MigrationEntryError(f"legacy blob undecodable: {exc}", index=-1)
                self._entry_failed(report, err)

        for index, entry in enumerate(entries):
            await self._migrate_entry(report, entry, index)

        if report.write_failures == 0:
            report.marked_done = await self._mark_done()
        else:
            logger.warning(
                "Migration left %d entries unwritten; will retry on next start",
                report.write_failures,
            )

        logger.info(
            "Migration finished migrated=%d skipped=%d errors=%d done=%s",
            report.migrated,
            report.skipped,
            len(report.errors),
            report.marked_done,
        )
        self._bus.emit(QueueEvent(kind=EventKind.MIGRATION_FINISHED, content=report.to_dict()))
        return report

    async def _migrate_entry(self, report: MigrationReport, entry: Any, index: int) -> None:
        try:
            task = convert_legacy_entry(entry, index)
        except MigrationEntryError as err:
            self._entry_failed(report, err)
            return
        except ValidationError as exc:
            entry_id = entry.get("requestId") if isinstance(entry, dict) else None
            err = MigrationEntryError(str(exc), index=index, entry_id=entry_id)
            self._entry_failed(report, err)
            return

        if task.id in self._store:
            report.skipped += 1
            self._count("skipped")
            return

        try:
            await self._store.upsert(task)
        except StorageError as exc:
            report.write_failures += 1
            self._count("write_failed")
            self._report("migrated task not persisted", task_id=task.id, error=exc.message)
            return
        report.migrated += 1
        self._count("migrated")

    async def _read_record(self) -> MigrationRecord:
        raw = await self._storage.get(MIGRATION_KEY)
        if raw is None:
            return MigrationRecord()
        try:
            return MigrationRecord.from_json(raw)
        except ValidationError:
            logger.warning("Migration record corrupt; treating as not done")
            return MigrationRecord()

    async def _mark_done(self) -> bool:
        record = MigrationRecord(done=True, completed_at=utc_now())
        try:
            await self._storage.set(MIGRATION_KEY, record.to_json())
        except StorageError as exc:
            self._report("migration record not persisted", error=exc.message)
            return False
        return True

    def _entry_failed(self, report: MigrationReport, err: MigrationEntryError) -> None:
        report.errors.append(err)
        self._count("invalid")
        logger.warning("Legacy entry %d skipped: %s", err.index, err.message)
        if self._diagnostics is not None:
            self._diagnostics.report("legacy entry not migrated", err.context())

    def _report(self, message: str, **context: object) -> None:
        logger.error("%s %s", message, context)
        if self._diagnostics is not None:
            self._diagnostics.report(message, context)

    def _count(self, result: str) -> None:
        if self._metrics is not None:
            self._metrics.migration_entry(result)
