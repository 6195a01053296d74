"""Collaborator ports — the narrow interfaces the queue consumes.

Wallet adapters, per-chain step executors and diagnostics sinks live
outside this package; the queue only talks to them through these protocols.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from swap_queue.errors.definitions import ErrUnknownTaskType

if TYPE_CHECKING:
    from collections.abc import Mapping

    from swap_queue.models.task import StepOutcome, Task

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalletState:
    """Wallet state as reported by the wallet collaborator."""

    connected: bool = False
    installed: bool = False


@runtime_checkable
class WalletCollaborator(Protocol):
    """Wallet state lookup and connect/disconnect actions."""

    def current_state(self, wallet_type: str) -> WalletState: ...
    async def connect(self, wallet_type: str) -> None: ...
    async def disconnect(self, wallet_type: str) -> None: ...


@runtime_checkable
class StepExecutor(Protocol):
    """Runs one step of a task and reports the outcome.

    Implementations never see other tasks and must not mutate *task*; the
    scheduler hands them a snapshot.
    """

    async def execute(self, task: Task, step_index: int) -> StepOutcome: ...


@runtime_checkable
class DiagnosticsSink(Protocol):
    """Receives non-fatal failures (bad migration entries, handler errors)."""

    def report(self, message: str, context: Mapping[str, Any]) -> None: ...


class LoggingDiagnostics:
    """Default diagnostics sink writing to the ``swap_queue`` logger."""

    def report(self, message: str, context: Mapping[str, Any]) -> None:
        logger.warning("%s %s", message, dict(context))


class ExecutorRegistry:
    """Maps task types to step executors."""

    def __init__(
        self,
        executors: Mapping[str, StepExecutor] | None = None,
        *,
        default: StepExecutor | None = None,
    ) -> None:
        self._executors: dict[str, StepExecutor] = dict(executors or {})
        self._default = default

    def register(self, task_type: str, executor: StepExecutor) -> None:
        """Register (or replace) the executor for *task_type*."""
        self._executors[task_type] = executor

    def supports(self, task_type: str) -> bool:
        return task_type in self._executors or self._default is not None

    def get(self, task_type: str) -> StepExecutor:
        """Return the executor for *task_type*.

        Raises:
            QueueError: ``ErrUnknownTaskType`` if none is registered.
        """
        executor = self._executors.get(task_type, self._default)
        if executor is None:
            raise ErrUnknownTaskType
        return executor
