"""QueueManager — central façade owning storage, migration, store and scheduler."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from swap_queue.collaborators.ports import ExecutorRegistry, LoggingDiagnostics
from swap_queue.errors.definitions import (
    ErrManagerNotReady,
    ErrTaskAlreadyExists,
    ErrTaskStillActive,
    ErrUnknownTaskType,
)
from swap_queue.errors.queue_errors import ConnectError, StorageError, TaskNotFound
from swap_queue.events.bus import EventBus
from swap_queue.events.events import EventKind, QueueEvent

if TYPE_CHECKING:
    from collections.abc import Mapping

    from swap_queue.collaborators.ports import (
        DiagnosticsSink,
        StepExecutor,
        WalletCollaborator,
        WalletState,
    )
    from swap_queue.config.settings import AppConfig
    from swap_queue.events.bus import EventSubscriber, Subscription
    from swap_queue.metrics.collector import QueueMetrics
    from swap_queue.migration.runner import MigrationContext, MigrationReport
    from swap_queue.models.task import Task, TaskSpec, TaskStatus
    from swap_queue.scheduler.engine import Scheduler
    from swap_queue.storage.client import StorageBackend, StorageClient
    from swap_queue.store.task_store import TaskStore

logger = logging.getLogger(__name__)

# Error messages
_ERR_NOT_INITIALIZED = "Queue manager not initialized. Call initialize() first."


class QueueManager:
    """Owns every queue component and sequences their lifecycle.

    ``initialize()`` is the startup barrier: storage connects, the task store
    loads, legacy migration runs, and only then does the scheduler start.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        executors: ExecutorRegistry | Mapping[str, StepExecutor] | None = None,
        wallet: WalletCollaborator | None = None,
        diagnostics: DiagnosticsSink | None = None,
        storage_backend: StorageBackend | None = None,
        metrics: QueueMetrics | None = None,
    ) -> None:
        """Initialize the manager with configuration and collaborators.

        Args:
            config: Application configuration.
            executors: Step executors by task type.
            wallet: Wallet collaborator for connect/disconnect actions.
            diagnostics: Sink for non-fatal failures; defaults to logging.
            storage_backend: Pre-built storage backend overriding ``config.storage``.
            metrics: Metrics to record into; created from config when omitted.
        """
        self._config = config
        if isinstance(executors, ExecutorRegistry):
            self._executors = executors
        else:
            self._executors = ExecutorRegistry(executors)
        self._wallet = wallet
        self._diagnostics = diagnostics or LoggingDiagnostics()
        self._storage_backend = storage_backend
        self._metrics = metrics
        self._initialized = False

        self._bus = EventBus(self._diagnostics)
        self._events = self._bus.subscriber_view()
        self._storage: StorageClient | None = None
        self._store: TaskStore | None = None
        self._scheduler: Scheduler | None = None
        self._migration: MigrationContext | None = None
        self._gauge_subs: list[Subscription] = []
        self._last_migration: MigrationReport | None = None

    async def initialize(self) -> None:
        """Connect storage, load tasks, migrate legacy records, start scheduling.

        Raises:
            RuntimeError: If already initialized.
            StorageUnavailableError: If no storage backend is reachable.
            StorageError: If the stored task keys cannot be listed.
        """
        if self._initialized:
            msg = "Queue manager already initialized"
            raise RuntimeError(msg)

        # Import here to avoid circular deps
        from swap_queue.metrics.collector import QueueMetrics
        from swap_queue.migration.runner import MigrationContext, MigrationRunner
        from swap_queue.scheduler.engine import Scheduler
        from swap_queue.storage.client import StorageClient
        from swap_queue.store.task_store import TaskStore

        if self._metrics is None and self._config.metrics.enabled:
            self._metrics = QueueMetrics()

        self._storage = StorageClient(self._config.storage, backend=self._storage_backend)
        await self._storage.connect()

        try:
            self._store = TaskStore(self._storage, diagnostics=self._diagnostics)
            await self._store.load()

            self._migration = MigrationContext()
            if self._config.migration.enabled:
                runner = MigrationRunner(
                    self._storage,
                    self._store,
                    self._bus,
                    self._migration,
                    legacy_key=self._config.migration.legacy_key,
                    diagnostics=self._diagnostics,
                    metrics=self._metrics,
                )
                self._last_migration = await runner.run()
        except BaseException:
            await self._storage.close()
            self._storage = None
            self._store = None
            raise

        if self._metrics is not None:
            for kind in EventKind:
                self._gauge_subs.append(self._bus.subscribe(kind, self._refresh_gauge))
            self._refresh_gauge()

        sched = self._config.scheduler
        self._scheduler = Scheduler(
            self._store,
            self._bus,
            self._executors,
            max_concurrent_tasks=sched.max_concurrent_tasks,
            resume_interrupted=sched.resume_interrupted,
            diagnostics=self._diagnostics,
            metrics=self._metrics,
        )
        self._initialized = True
        await self._scheduler.start()
        logger.info("Queue manager initialized with %d tasks", len(self._store))

    async def close(self) -> None:
        """Stop scheduling, drop every subscriber and close storage.

        Can be called multiple times (idempotent).
        """
        if not self._initialized:
            return

        if self._scheduler is not None:
            await self._scheduler.stop()
            self._scheduler = None

        self._bus.clear_all()
        self._gauge_subs.clear()
        self._store = None
        self._migration = None

        if self._storage is not None:
            await self._storage.close()
            self._storage = None

        self._initialized = False
        logger.info("Queue manager closed")

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        """Check if the manager is initialized."""
        return self._initialized

    @property
    def config(self) -> AppConfig:
        """Get the application configuration."""
        return self._config

    @property
    def events(self) -> EventSubscriber:
        """Subscribe/unsubscribe surface for observers.

        Available before ``initialize()`` so observers can catch the
        migration and startup events.
        """
        return self._events

    @property
    def executors(self) -> ExecutorRegistry:
        return self._executors

    @property
    def storage(self) -> StorageClient:
        """Get the storage client.

        Raises:
            RuntimeError: If manager not initialized.
        """
        if self._storage is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._storage

    @property
    def store(self) -> TaskStore:
        """Get the task store.

        Raises:
            RuntimeError: If manager not initialized.
        """
        if self._store is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._store

    @property
    def scheduler(self) -> Scheduler:
        """Get the scheduler.

        Raises:
            RuntimeError: If manager not initialized.
        """
        if self._scheduler is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._scheduler

    @property
    def migration(self) -> MigrationContext | None:
        """Process-scoped migration state (None before ``initialize()``)."""
        return self._migration

    @property
    def last_migration(self) -> MigrationReport | None:
        """Report of the migration run during ``initialize()``."""
        return self._last_migration

    @property
    def metrics(self) -> QueueMetrics | None:
        """Get the queue metrics (None if disabled)."""
        return self._metrics

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def enqueue(self, spec: TaskSpec, *, strict: bool = False) -> str:
        """Persist a new PENDING task and hand it to the scheduler.

        Args:
            spec: What to run.
            strict: Re-raise a storage failure (and forget the task) instead
                of keeping it in memory for this session.

        Returns:
            The new task id.

        Raises:
            QueueError: ``ErrUnknownTaskType`` or ``ErrTaskAlreadyExists``.
            StorageError: Only with ``strict=True``.
        """
        store = self._require_ready()
        if not self._executors.supports(spec.type):
            raise ErrUnknownTaskType
        if spec.id is not None and spec.id in store:
            raise ErrTaskAlreadyExists

        task = spec.build()
        try:
            await store.upsert(task)
        except StorageError as exc:
            if strict:
                await self._forget(task.id)
                raise
            logger.error("Task %s kept in memory only: %s", task.id, exc.message)
            self._diagnostics.report(
                "enqueued task not persisted", {"task_id": task.id, "error": exc.message}
            )

        logger.info("Task enqueued id=%s type=%s steps=%d", task.id, task.type, len(task.steps))
        self._bus.emit(
            QueueEvent(kind=EventKind.TASK_CREATED, task_id=task.id, content=task.to_dict())
        )
        self.scheduler.submit(task.id)
        return task.id

    def list(self, status: TaskStatus | None = None) -> list[Task]:
        """All tasks in insertion order, optionally filtered by *status*."""
        store = self._require_ready()
        if status is None:
            return store.list()
        return store.list_by_status(status)

    def get(self, task_id: str) -> Task:
        """Return a copy of one task.

        Raises:
            TaskNotFound: If the id is unknown.
        """
        task = self._require_ready().get(task_id)
        if task is None:
            raise TaskNotFound(task_id)
        return task

    async def retry_task(self, task_id: str) -> None:
        """Re-attempt a parked or interrupted task's current step now.

        Raises:
            TaskNotFound: If the id is unknown.
            TaskNotResumable: If the task is completed, failed or in flight.
        """
        self._require_ready()
        await self.scheduler.retry_task(task_id)

    async def remove_task(self, task_id: str) -> None:
        """Delete a completed or failed task from history.

        Raises:
            TaskNotFound: If the id is unknown.
            QueueError: ``ErrTaskStillActive`` for a non-terminal task.
            StorageError: If the durable delete fails.
        """
        store = self._require_ready()
        status = store.status_of(task_id)
        if status is None:
            raise TaskNotFound(task_id)
        if not status.is_terminal:
            raise ErrTaskStillActive
        await store.remove(task_id)
        self._refresh_gauge()

    # ------------------------------------------------------------------
    # Wallet signals and actions
    # ------------------------------------------------------------------

    async def on_wallet_connected(self, wallet_type: str, chain: str | None = None) -> list[str]:
        """Feed a CONNECTED signal to the scheduler; returns resumed task ids."""
        self._require_ready()
        return await self.scheduler.on_wallet_connected(wallet_type, chain)

    async def on_wallet_disconnected(self, wallet_type: str | None = None) -> list[str]:
        """Feed a DISCONNECTED signal to the scheduler; returns re-evaluated task ids."""
        self._require_ready()
        return await self.scheduler.on_wallet_disconnected(wallet_type)

    def wallet_state(self, wallet_type: str) -> WalletState:
        """Current state of *wallet_type* as reported by the wallet collaborator.

        Raises:
            ConnectError: If no wallet collaborator is configured.
        """
        return self._require_wallet(wallet_type).current_state(wallet_type)

    async def connect_wallet(self, wallet_type: str) -> None:
        """Ask the wallet collaborator to connect *wallet_type*.

        Raises:
            ConnectError: If no collaborator is configured or it fails.
        """
        wallet = self._require_wallet(wallet_type)
        try:
            await wallet.connect(wallet_type)
        except ConnectError:
            raise
        except Exception as e:
            msg = f"Failed to connect wallet {wallet_type}: {e}"
            raise ConnectError(msg, wallet_type=wallet_type) from e

    async def disconnect_wallet(self, wallet_type: str) -> None:
        """Ask the wallet collaborator to disconnect *wallet_type*.

        Raises:
            ConnectError: If no collaborator is configured or it fails.
        """
        wallet = self._require_wallet(wallet_type)
        try:
            await wallet.disconnect(wallet_type)
        except ConnectError:
            raise
        except Exception as e:
            msg = f"Failed to disconnect wallet {wallet_type}: {e}"
            raise ConnectError(msg, wallet_type=wallet_type) from e

    async def wait_idle(self) -> None:
        """Wait until the scheduler has no step in flight."""
        if self._scheduler is not None:
            await self._scheduler.wait_idle()

    async def health_check(self) -> dict[str, str]:
        """Check health status of the queue components.

        Returns:
            Dictionary with component statuses ('ok', 'error', 'not_initialized').
        """
        status = {
            "manager": "ok" if self._initialized else "not_initialized",
            "storage": "unknown",
            "scheduler": "unknown",
        }
        if self._initialized:
            status["storage"] = (
                "ok" if self._storage is not None and self._storage.is_connected else "error"
            )
            status["scheduler"] = (
                "ok" if self._scheduler is not None and self._scheduler.is_started else "error"
            )
        return status

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_ready(self) -> TaskStore:
        if not self._initialized or self._store is None:
            raise ErrManagerNotReady
        return self._store

    def _require_wallet(self, wallet_type: str) -> WalletCollaborator:
        if self._wallet is None:
            msg = "no wallet collaborator configured"
            raise ConnectError(msg, wallet_type=wallet_type)
        return self._wallet

    async def _forget(self, task_id: str) -> None:
        """Drop a task that never reached storage."""
        try:
            await self.store.remove(task_id)
        except StorageError:
            logger.debug("Task %s was not in storage", task_id)

    def _refresh_gauge(self, _event: QueueEvent | None = None) -> None:
        if self._metrics is not None and self._store is not None:
            self._metrics.set_task_counts(t.status for t in self._store.list())
