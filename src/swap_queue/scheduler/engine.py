"""Scheduler — the task state machine and precondition-driven resume.

::

    PENDING --start--> RUNNING
    RUNNING --step done, more steps--> RUNNING
    RUNNING --all steps done--> COMPLETED
    RUNNING --blocked: wallet connect--> WAITING_FOR_WALLET_CONNECT
    RUNNING --blocked: network change--> WAITING_FOR_NETWORK_CHANGE
    RUNNING --error--> FAILED
    WAITING_* --matching connect--> RUNNING (same step)
    WAITING_* --disconnect--> WAITING_FOR_NETWORK_CHANGE (network-dependent waits)

Each task has at most one holder at a time: a runner coroutine driving its
steps, or a disconnect re-evaluation. The holder is the only writer of the
task. Signals that arrive while a task is held are recorded and replayed
when it is released. Waiting tasks hold no coroutine; resume is driven by
``on_wallet_connected`` and ``retry_task`` only.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from swap_queue.errors.queue_errors import (
    QueueError,
    StepExecutionError,
    StorageError,
    TaskNotFound,
    TaskNotResumable,
)
from swap_queue.events.events import EventKind, QueueEvent
from swap_queue.models.task import (
    SignalKind,
    StepBlocked,
    StepDone,
    StepFailed,
    TaskStatus,
    WalletSignal,
    utc_now,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from swap_queue.collaborators.ports import DiagnosticsSink, ExecutorRegistry, StepExecutor
    from swap_queue.events.bus import EventBus
    from swap_queue.metrics.collector import QueueMetrics
    from swap_queue.models.task import StepOutcome, Task
    from swap_queue.store.task_store import TaskStore

logger = logging.getLogger(__name__)

_WAITING = (TaskStatus.WAITING_FOR_WALLET_CONNECT, TaskStatus.WAITING_FOR_NETWORK_CHANGE)
_ACTIVE = (TaskStatus.PENDING, TaskStatus.RUNNING, *_WAITING)
_NOT_CONNECTED = object()


def precondition_met(task: Task, wallet_type: str, chain: str | None) -> bool:
    """Whether a wallet connected as *wallet_type* on *chain* unblocks *task*."""
    if task.required_wallet_type and task.required_wallet_type != wallet_type:
        return False
    if task.status == TaskStatus.WAITING_FOR_WALLET_CONNECT:
        return True
    if task.status == TaskStatus.WAITING_FOR_NETWORK_CHANGE:
        return task.required_chain is None or task.required_chain == chain
    return False


def by_age(tasks: Iterable[Task]) -> list[Task]:
    """Oldest first; ties keep their incoming (insertion) order."""
    return sorted(tasks, key=lambda t: t.created_at)


class Scheduler:
    """Drives tasks through their steps and resumes parked ones on wallet signals.

    Usage::

        scheduler = Scheduler(store, bus, executors)
        await scheduler.start()
        await scheduler.on_wallet_connected("metamask", "ETH")
        await scheduler.wait_idle()
        await scheduler.stop()
    """

    def __init__(
        self,
        store: TaskStore,
        bus: EventBus,
        executors: ExecutorRegistry,
        *,
        max_concurrent_tasks: int = 8,
        resume_interrupted: bool = True,
        diagnostics: DiagnosticsSink | None = None,
        metrics: QueueMetrics | None = None,
    ) -> None:
        self._store = store
        self._bus = bus
        self._executors = executors
        self._resume_interrupted = resume_interrupted
        self._diagnostics = diagnostics
        self._metrics = metrics
        self._semaphore = asyncio.Semaphore(max_concurrent_tasks)

        self._started = False
        self._held: set[str] = set()
        self._runners: dict[str, asyncio.Task[None]] = {}
        self._deferred: dict[str, list[WalletSignal]] = {}
        self._connected: dict[str, str | None] = {}

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def connected_wallets(self) -> dict[str, str | None]:
        """Wallets currently known to be connected (wallet type → chain)."""
        return dict(self._connected)

    def is_busy(self, task_id: str) -> bool:
        """Whether a runner or re-evaluation currently holds *task_id*."""
        return task_id in self._held

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> list[str]:  # noqa: ASYNC910
        """Open the startup barrier and launch everything that can run.

        Launches PENDING tasks, RUNNING tasks interrupted by a previous
        shutdown (when ``resume_interrupted``), and waiting tasks whose
        precondition is met by a wallet that connected before the barrier
        opened.

        Returns:
            Ids of the launched tasks, in launch order.
        """
        if self._started:
            return []
        self._started = True

        runnable = [TaskStatus.PENDING]
        if self._resume_interrupted:
            runnable.append(TaskStatus.RUNNING)
        launched = [
            t.id
            for t in by_age(self._store.list_by_status(*runnable))
            if self._launch(t.id, trigger="start")
        ]

        for task in by_age(self._store.list_by_status(*_WAITING)):
            if any(precondition_met(task, wt, ch) for wt, ch in self._connected.items()):
                if self._launch(task.id, trigger="signal"):
                    launched.append(task.id)

        logger.info("Scheduler started; launched %d tasks", len(launched))
        return launched

    async def stop(self) -> None:
        """Cancel in-flight runners. Interrupted tasks stay RUNNING in storage."""
        if not self._started:
            return
        self._started = False
        runners = list(self._runners.values())
        for runner in runners:
            runner.cancel()
        results = await asyncio.gather(*runners, return_exceptions=True)
        for r in results:
            if isinstance(r, Exception) and not isinstance(r, asyncio.CancelledError):
                logger.error("Task runner error during shutdown: %s", r)
        self._runners.clear()
        self._held.clear()
        self._deferred.clear()
        logger.info("Scheduler stopped")

    async def wait_idle(self) -> None:
        """Wait until no runner is in flight (including runners launched meanwhile)."""
        while self._runners:
            await asyncio.gather(*list(self._runners.values()), return_exceptions=True)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def submit(self, task_id: str) -> bool:
        """Launch a freshly enqueued PENDING task.

        Before ``start()`` the task simply stays PENDING and is picked up
        when the barrier opens.
        """
        if not self._started:
            return False
        if self._store.status_of(task_id) != TaskStatus.PENDING:
            return False
        return self._launch(task_id, trigger=None)

    async def retry_task(self, task_id: str) -> None:  # noqa: ASYNC910
        """Manually re-attempt a task's current step.

        A task stored as RUNNING that no runner holds (interrupted and left
        alone at start) is relaunched from its current step.

        Raises:
            RuntimeError: If the scheduler has not started.
            TaskNotFound: If the id is unknown.
            TaskNotResumable: If the task is COMPLETED, FAILED or held by a runner.
        """
        self._ensure_started()
        status = self._store.status_of(task_id)
        if status is None:
            raise TaskNotFound(task_id)
        if status.is_terminal or task_id in self._held:
            raise TaskNotResumable(task_id, str(status))
        self._launch(task_id, trigger="manual")

    async def on_wallet_connected(  # noqa: ASYNC910
        self,
        wallet_type: str,
        chain: str | None = None,
    ) -> list[str]:
        """Resume every parked task this connection unblocks, oldest first.

        Idempotent: a task already resumed is held by its runner, so a
        duplicate signal is only recorded and re-checked once it is released.

        Returns:
            Ids of the tasks resumed by this call.
        """
        signal = WalletSignal(kind=SignalKind.CONNECTED, wallet_type=wallet_type, chain=chain)
        self._connected[wallet_type] = chain
        if not self._started:
            return []

        resumed: list[str] = []
        for task in by_age(self._store.list_by_status(*_ACTIVE)):
            if task.id in self._held:
                self._defer(task.id, signal)
                continue
            if precondition_met(task, wallet_type, chain) and self._launch(
                task.id, trigger="signal"
            ):
                resumed.append(task.id)
        if resumed:
            logger.info(
                "Wallet %s connected on %s; resumed %d tasks", wallet_type, chain, len(resumed)
            )
        return resumed

    async def on_wallet_disconnected(self, wallet_type: str | None = None) -> list[str]:
        """Re-evaluate every parked network-dependent task.

        Level-triggered: each call re-checks all waiting tasks, no matter how
        many disconnects came before without a reconnect.

        Args:
            wallet_type: The wallet that went away; None means all wallets.

        Returns:
            Ids of the tasks re-evaluated by this call.
        """
        signal = WalletSignal(kind=SignalKind.DISCONNECTED, wallet_type=wallet_type)
        if wallet_type is None:
            self._connected.clear()
        else:
            self._connected.pop(wallet_type, None)
        if not self._started:
            return []

        reevaluated: list[str] = []
        for snapshot in by_age(self._store.list_by_status(*_ACTIVE)):
            if snapshot.id in self._held:
                self._defer(snapshot.id, signal)
                continue
            task = self._store.get(snapshot.id)
            if task is None or task.status not in _WAITING:
                continue
            if await self._reevaluate_wait(task):
                reevaluated.append(task.id)
        return reevaluated

    # ------------------------------------------------------------------
    # Holding and signal replay
    # ------------------------------------------------------------------

    def _ensure_started(self) -> None:
        if not self._started:
            msg = "Scheduler not started. Call start() first."
            raise RuntimeError(msg)

    def _launch(self, task_id: str, *, trigger: str | None) -> bool:
        """Take the hold on *task_id* and spawn its runner."""
        if task_id in self._held:
            return False
        self._held.add(task_id)
        self._runners[task_id] = asyncio.create_task(
            self._drive(task_id), name=f"swapq-task-{task_id}"
        )
        if trigger and self._metrics is not None:
            self._metrics.resumed(trigger)
        return True

    def _defer(self, task_id: str, signal: WalletSignal) -> None:
        logger.debug("Task %s busy; deferring %s signal", task_id, signal.kind)
        self._deferred.setdefault(task_id, []).append(signal)

    async def _replay_deferred(self, task_id: str) -> None:
        """Re-check signals recorded while *task_id* was held."""
        signals = self._deferred.pop(task_id, None)
        if not signals:
            return
        for i, signal in enumerate(signals):
            if task_id in self._held:
                self._deferred.setdefault(task_id, []).extend(signals[i:])
                return
            task = self._store.get(task_id)
            if task is None or task.status not in _WAITING:
                continue
            if signal.kind == SignalKind.CONNECTED:
                wallet_type = signal.wallet_type or ""
                still_connected = self._connected.get(wallet_type, _NOT_CONNECTED) == signal.chain
                if still_connected and precondition_met(task, wallet_type, signal.chain):
                    self._launch(task_id, trigger="signal")
            else:
                await self._reevaluate_wait(task)

    async def _reevaluate_wait(self, task: Task) -> bool:
        """Disconnect re-check of one parked task. Returns True if it was touched."""
        if task.required_chain is None:
            return False
        self._held.add(task.id)
        try:
            task.status = TaskStatus.WAITING_FOR_NETWORK_CHANGE
            task.updated_at = utc_now()
            await self._save(task)
            self._emit(EventKind.TASK_UPDATED, task)
        finally:
            self._held.discard(task.id)
        await self._replay_deferred(task.id)
        return True

    # ------------------------------------------------------------------
    # Runner
    # ------------------------------------------------------------------

    async def _drive(self, task_id: str) -> None:
        try:
            async with self._semaphore:
                await self._run_steps(task_id)
        except asyncio.CancelledError:
            logger.info("Task %s runner cancelled", task_id)
            raise
        except Exception:
            logger.exception("Task %s runner crashed", task_id)
        finally:
            if self._runners.get(task_id) is asyncio.current_task():
                del self._runners[task_id]
            self._held.discard(task_id)
        await self._replay_deferred(task_id)

    async def _run_steps(self, task_id: str) -> None:
        task = self._store.get(task_id)
        if task is None or task.is_terminal:
            return

        try:
            executor = self._executors.get(task.type)
        except QueueError as exc:
            await self._finish(task, TaskStatus.FAILED, error=f"{exc.message}: {task.type}")
            return

        while True:
            index = task.current_step_index
            if index is None:
                await self._finish(task, TaskStatus.COMPLETED)
                return

            if task.status != TaskStatus.RUNNING:
                task.status = TaskStatus.RUNNING
                task.required_chain = None
                task.updated_at = utc_now()
                await self._save(task)
                self._emit(EventKind.TASK_UPDATED, task)

            outcome = await self._execute(executor, task, index)

            match outcome:
                case StepDone(result=result):
                    task.steps[index].done = True
                    task.steps[index].result = result
                    task.last_error = None
                    if task.current_step_index is None:
                        await self._finish(task, TaskStatus.COMPLETED)
                        return
                    task.updated_at = utc_now()
                    await self._save(task)
                    self._emit(EventKind.TASK_UPDATED, task)
                case StepBlocked(precondition=pre):
                    task.status = pre.status
                    task.required_chain = pre.chain
                    if pre.wallet_type:
                        task.required_wallet_type = pre.wallet_type
                    task.updated_at = utc_now()
                    await self._save(task)
                    self._emit(EventKind.TASK_UPDATED, task)
                    logger.info("Task %s step %d blocked: %s", task.id, index, task.status)
                    return
                case StepFailed(detail=detail):
                    await self._finish(task, TaskStatus.FAILED, error=detail)
                    return

    async def _execute(self, executor: StepExecutor, task: Task, index: int) -> StepOutcome:
        """Invoke the executor on a snapshot and normalize its outcome."""
        snapshot = task.model_copy(deep=True)
        tracker = (
            self._metrics.track_step(task.type)
            if self._metrics is not None
            else contextlib.nullcontext()
        )
        try:
            with tracker:
                outcome = await executor.execute(snapshot, index)
        except StepExecutionError as exc:
            outcome = StepFailed(detail=exc.message)
        except Exception as exc:
            logger.exception("Executor for task %s step %d raised", task.id, index)
            outcome = StepFailed(detail=f"{type(exc).__name__}: {exc}")

        if not isinstance(outcome, StepDone | StepBlocked | StepFailed):
            outcome = StepFailed(detail=f"executor returned unsupported outcome {outcome!r}")

        if self._metrics is not None:
            label = {StepDone: "done", StepBlocked: "blocked", StepFailed: "failed"}
            self._metrics.step_outcome(task.type, label[type(outcome)])
        return outcome

    async def _finish(self, task: Task, status: TaskStatus, *, error: str | None = None) -> None:
        task.status = status
        task.required_chain = None
        task.last_error = error
        task.updated_at = utc_now()
        await self._save(task)
        if status == TaskStatus.COMPLETED:
            logger.info("Task %s completed", task.id)
            self._emit(EventKind.TASK_COMPLETED, task)
        else:
            logger.warning("Task %s failed: %s", task.id, error)
            self._emit(EventKind.TASK_FAILED, task)

    async def _save(self, task: Task) -> None:
        """Write through the store; a storage failure is reported, not fatal."""
        try:
            await self._store.upsert(task)
        except StorageError as exc:
            logger.error("Task %s not persisted: %s", task.id, exc.message)
            if self._diagnostics is not None:
                self._diagnostics.report(
                    "task state not persisted",
                    {"task_id": task.id, "status": str(task.status), "error": exc.message},
                )

    def _emit(self, kind: EventKind, task: Task) -> None:
        self._bus.emit(QueueEvent(kind=kind, task_id=task.id, content=task.to_dict()))
