"""External collaborator interfaces."""

from __future__ import annotations

from swap_queue.collaborators.ports import (
    DiagnosticsSink,
    ExecutorRegistry,
    LoggingDiagnostics,
    StepExecutor,
    WalletCollaborator,
    WalletState,
)

__all__ = [
    "DiagnosticsSink",
    "ExecutorRegistry",
    "LoggingDiagnostics",
    "StepExecutor",
    "WalletCollaborator",
    "WalletState",
]
