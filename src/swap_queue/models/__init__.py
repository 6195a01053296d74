"""Queue data model."""

from __future__ import annotations

from swap_queue.models.task import (
    MigrationRecord,
    PreconditionKind,
    SignalKind,
    StepBlocked,
    StepDone,
    StepFailed,
    StepOutcome,
    Task,
    TaskSpec,
    TaskStatus,
    TaskStep,
    WalletPrecondition,
    WalletSignal,
)

__all__ = [
    "MigrationRecord",
    "PreconditionKind",
    "SignalKind",
    "StepBlocked",
    "StepDone",
    "StepFailed",
    "StepOutcome",
    "Task",
    "TaskSpec",
    "TaskStatus",
    "TaskStep",
    "WalletPrecondition",
    "WalletSignal",
]
