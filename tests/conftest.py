"""Shared test fixtures and fakes for the swap queue test suite."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import pytest

from swap_queue.collaborators.ports import ExecutorRegistry, WalletState
from swap_queue.config.settings import AppConfig, StorageConfig, StorageEngine
from swap_queue.errors.queue_errors import StorageError
from swap_queue.events.bus import EventBus
from swap_queue.events.events import EventKind
from swap_queue.models.task import (
    PreconditionKind,
    StepBlocked,
    StepDone,
    Task,
    TaskStatus,
    TaskStep,
    WalletPrecondition,
)
from swap_queue.storage.client import StorageClient
from swap_queue.storage.memory import MemoryStorage
from swap_queue.store.task_store import TaskStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping

    from swap_queue.events.events import QueueEvent
    from swap_queue.models.task import StepOutcome

BASE_TIME = datetime(2024, 1, 1, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class ScriptedExecutor:
    """Step executor returning scripted outcomes per task id.

    Unscripted calls return ``StepDone``. A scripted ``BaseException`` is
    raised instead of returned. ``hold(task_id)`` makes calls for that task
    wait until the returned event is set.
    """

    def __init__(
        self,
        script: Mapping[str, list[Any]] | None = None,
        *,
        default: StepOutcome | None = None,
    ) -> None:
        self.script: dict[str, list[Any]] = {k: list(v) for k, v in (script or {}).items()}
        self.default = default
        self.calls: list[tuple[str, int]] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.active = 0
        self.max_active = 0

    def then(self, task_id: str, *outcomes: Any) -> None:
        self.script.setdefault(task_id, []).extend(outcomes)

    def hold(self, task_id: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[task_id] = gate
        return gate

    def calls_for(self, task_id: str) -> list[int]:
        return [i for tid, i in self.calls if tid == task_id]

    async def execute(self, task: Task, step_index: int) -> StepOutcome:
        self.calls.append((task.id, step_index))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            gate = self.gates.get(task.id)
            if gate is not None:
                await gate.wait()
            else:
                await asyncio.sleep(0)
            queue = self.script.get(task.id)
            if queue:
                outcome = queue.pop(0)
            else:
                outcome = self.default or StepDone(result=f"{task.id}:{step_index}")
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        finally:
            self.active -= 1


class FakeWallet:
    """Wallet collaborator recording connect/disconnect requests."""

    def __init__(self, *, fail_with: Exception | None = None) -> None:
        self.fail_with = fail_with
        self.connected: set[str] = set()
        self.requests: list[tuple[str, str]] = []

    def current_state(self, wallet_type: str) -> WalletState:
        return WalletState(connected=wallet_type in self.connected, installed=True)

    async def connect(self, wallet_type: str) -> None:  # noqa: ASYNC910
        self.requests.append(("connect", wallet_type))
        if self.fail_with is not None:
            raise self.fail_with
        self.connected.add(wallet_type)

    async def disconnect(self, wallet_type: str) -> None:  # noqa: ASYNC910
        self.requests.append(("disconnect", wallet_type))
        if self.fail_with is not None:
            raise self.fail_with
        self.connected.discard(wallet_type)


class RecordingDiagnostics:
    """Diagnostics sink collecting every report."""

    def __init__(self) -> None:
        self.reports: list[tuple[str, dict[str, Any]]] = []

    def report(self, message: str, context: Mapping[str, Any]) -> None:
        self.reports.append((message, dict(context)))

    def messages(self) -> list[str]:
        return [m for m, _ in self.reports]


class FlakyStorage(MemoryStorage):
    """Memory backend whose writes (or reads) can be switched to fail."""

    def __init__(self, config: StorageConfig, **kwargs: Any) -> None:
        super().__init__(config, **kwargs)
        self.fail_writes = False
        self.fail_reads = False
        self.fail_keys: set[str] = set()

    async def get(self, key: str) -> str | None:
        if self.fail_reads or key in self.fail_keys:
            msg = "disk read error"
            raise OSError(msg)
        return await super().get(key)

    async def set(self, key: str, value: str) -> None:
        if self.fail_writes or key in self.fail_keys:
            msg = "disk full"
            raise StorageError(msg, key=key)
        await super().set(key, value)


class EventRecorder:
    """Subscribes to every event kind and keeps what it receives."""

    def __init__(self, bus: Any) -> None:
        self.events: list[QueueEvent] = []
        for kind in EventKind:
            bus.subscribe(kind, self.events.append)

    def kinds(self, task_id: str | None = None) -> list[EventKind]:
        return [e.kind for e in self.events if task_id is None or e.task_id == task_id]

    def statuses(self, task_id: str) -> list[str]:
        return [e.content["status"] for e in self.events if e.task_id == task_id]


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_task(
    task_id: str,
    *,
    age: int = 0,
    steps: int = 1,
    done: int = 0,
    status: TaskStatus = TaskStatus.PENDING,
    task_type: str = "swap",
    **fields: Any,
) -> Task:
    """Build a task created ``age`` seconds after ``BASE_TIME``."""
    created = BASE_TIME + timedelta(seconds=age)
    return Task(
        id=task_id,
        type=task_type,
        status=status,
        steps=[TaskStep(name=f"step-{i}", done=i < done) for i in range(steps)],
        created_at=created,
        updated_at=created,
        **fields,
    )


def wallet_blocked(wallet_type: str | None = None) -> StepBlocked:
    return StepBlocked(
        WalletPrecondition(kind=PreconditionKind.WALLET_CONNECT, wallet_type=wallet_type)
    )


def network_blocked(chain: str, wallet_type: str | None = None) -> StepBlocked:
    return StepBlocked(
        WalletPrecondition(
            kind=PreconditionKind.NETWORK_CHANGE, chain=chain, wallet_type=wallet_type
        )
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def storage_config() -> StorageConfig:
    return StorageConfig(engine=StorageEngine.MEMORY)


@pytest.fixture
def app_config(storage_config: StorageConfig) -> AppConfig:
    """Provide a test AppConfig backed by memory storage."""
    return AppConfig(debug=True, storage=storage_config)


@pytest.fixture
def backend(storage_config: StorageConfig) -> FlakyStorage:
    return FlakyStorage(storage_config)


@pytest.fixture
async def storage(
    storage_config: StorageConfig, backend: FlakyStorage
) -> AsyncIterator[StorageClient]:
    client = StorageClient(storage_config, backend=backend)
    await client.connect()
    yield client
    await client.close()


@pytest.fixture
def diagnostics() -> RecordingDiagnostics:
    return RecordingDiagnostics()


@pytest.fixture
def bus(diagnostics: RecordingDiagnostics) -> EventBus:
    return EventBus(diagnostics)


@pytest.fixture
def recorder(bus: EventBus) -> EventRecorder:
    return EventRecorder(bus)


@pytest.fixture
def store(storage: StorageClient, diagnostics: RecordingDiagnostics) -> TaskStore:
    return TaskStore(storage, diagnostics=diagnostics)


@pytest.fixture
def executor() -> ScriptedExecutor:
    return ScriptedExecutor()


@pytest.fixture
def registry(executor: ScriptedExecutor) -> ExecutorRegistry:
    return ExecutorRegistry({"swap": executor})


@pytest.fixture
def wallet() -> FakeWallet:
    return FakeWallet()
