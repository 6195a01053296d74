"""Queue data model — tasks, steps, preconditions, migration record, signals.

Tasks are pydantic models serialized to JSON with camelCase aliases so a
stored record reads the same way a UI consumer sees it.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(tz=UTC)


class TaskStatus(enum.StrEnum):
    """Task lifecycle status."""

    PENDING = "pending"
    RUNNING = "running"
    WAITING_FOR_WALLET_CONNECT = "waiting_for_wallet_connect"
    WAITING_FOR_NETWORK_CHANGE = "waiting_for_network_change"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    @property
    def is_waiting(self) -> bool:
        return self in (TaskStatus.WAITING_FOR_WALLET_CONNECT, TaskStatus.WAITING_FOR_NETWORK_CHANGE)


class PreconditionKind(enum.StrEnum):
    """What a blocked step is waiting for."""

    WALLET_CONNECT = "wallet_connect"
    NETWORK_CHANGE = "network_change"


class SignalKind(enum.StrEnum):
    """Wallet signal kinds fed into the scheduler."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


_MODEL_CONFIG = ConfigDict(populate_by_name=True, use_enum_values=False)


class WalletPrecondition(BaseModel):
    """Condition a blocked step needs before it can be re-attempted."""

    model_config = _MODEL_CONFIG

    kind: PreconditionKind
    chain: str | None = None
    wallet_type: str | None = Field(default=None, alias="walletType")

    @property
    def status(self) -> TaskStatus:
        """Waiting status a task takes while blocked on this precondition."""
        if self.kind == PreconditionKind.NETWORK_CHANGE:
            return TaskStatus.WAITING_FOR_NETWORK_CHANGE
        return TaskStatus.WAITING_FOR_WALLET_CONNECT


class TaskStep(BaseModel):
    """One ordered step of a task."""

    model_config = _MODEL_CONFIG

    name: str
    done: bool = False
    result: Any = None


class Task(BaseModel):
    """One queued swap/transfer request."""

    model_config = _MODEL_CONFIG

    id: str
    type: str
    status: TaskStatus = TaskStatus.PENDING
    steps: list[TaskStep] = Field(default_factory=list)
    required_chain: str | None = Field(default=None, alias="requiredChain")
    required_wallet_type: str | None = Field(default=None, alias="requiredWalletType")
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")
    last_error: str | None = Field(default=None, alias="lastError")
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def current_step_index(self) -> int | None:
        """Index of the first unfinished step, or None when all are done."""
        for i, step in enumerate(self.steps):
            if not step.done:
                return i
        return None

    def to_json(self) -> str:
        """Serialize for storage."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str) -> Self:
        """Deserialize a stored record.

        Raises:
            pydantic.ValidationError: If the record is corrupt.
        """
        return cls.model_validate_json(raw)

    def to_dict(self) -> dict[str, Any]:
        """Plain JSON-compatible dict (camelCase keys)."""
        return self.model_dump(mode="json", by_alias=True)


class TaskSpec(BaseModel):
    """Caller-provided description of a task to enqueue."""

    model_config = _MODEL_CONFIG

    type: str
    steps: list[str] = Field(min_length=1)
    id: str | None = None
    required_wallet_type: str | None = Field(default=None, alias="requiredWalletType")
    payload: dict[str, Any] = Field(default_factory=dict)

    def build(self, *, now: datetime | None = None) -> Task:
        """Create a fresh PENDING task from this spec."""
        ts = now or utc_now()
        return Task(
            id=self.id or uuid.uuid4().hex,
            type=self.type,
            status=TaskStatus.PENDING,
            steps=[TaskStep(name=name) for name in self.steps],
            required_wallet_type=self.required_wallet_type,
            created_at=ts,
            updated_at=ts,
            payload=dict(self.payload),
        )


class MigrationRecord(BaseModel):
    """Persisted flag recording whether legacy migration completed."""

    model_config = _MODEL_CONFIG

    done: bool = False
    completed_at: datetime | None = Field(default=None, alias="completedAt")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str) -> Self:
        return cls.model_validate_json(raw)


@dataclass(frozen=True)
class WalletSignal:
    """Transient wallet state change reported by the wallet collaborator."""

    kind: SignalKind
    wallet_type: str | None = None
    chain: str | None = None


# ---------------------------------------------------------------------------
# Step outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StepDone:
    """The step finished; ``result`` is stored on the step."""

    result: Any = None


@dataclass(frozen=True)
class StepBlocked:
    """The step cannot proceed until ``precondition`` holds."""

    precondition: WalletPrecondition


@dataclass(frozen=True)
class StepFailed:
    """The step failed unrecoverably."""

    detail: str


StepOutcome = StepDone | StepBlocked | StepFailed
