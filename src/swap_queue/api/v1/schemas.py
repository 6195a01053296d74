"""V1 API request/response Pydantic schemas.

Task bodies are returned as ``Task.to_dict()`` (camelCase, the stored shape);
these schemas cover requests and the small action responses.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from swap_queue.models.task import TaskSpec


class ErrorResponse(BaseModel):
    """Standard error body: ``{"code": "...", "message": "..."}``."""

    code: str
    message: str


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskCreateRequest(BaseModel):
    """POST /api/v1/tasks — enqueue a new task."""

    model_config = ConfigDict(populate_by_name=True)

    type: str
    steps: list[str] = Field(min_length=1)
    id: str | None = None
    required_wallet_type: str | None = Field(default=None, alias="requiredWalletType")
    payload: dict[str, Any] = Field(default_factory=dict)

    def to_spec(self) -> TaskSpec:
        return TaskSpec(
            type=self.type,
            steps=self.steps,
            id=self.id,
            required_wallet_type=self.required_wallet_type,
            payload=self.payload,
        )


class TaskCreatedResponse(BaseModel):
    id: str


# ---------------------------------------------------------------------------
# Wallet signals
# ---------------------------------------------------------------------------


class WalletConnectedRequest(BaseModel):
    """POST /api/v1/wallets/connected — a wallet connected (or switched chain)."""

    model_config = ConfigDict(populate_by_name=True)

    wallet_type: str = Field(alias="walletType", min_length=1)
    chain: str | None = None


class WalletDisconnectedRequest(BaseModel):
    """POST /api/v1/wallets/disconnected — omit ``walletType`` for all wallets."""

    model_config = ConfigDict(populate_by_name=True)

    wallet_type: str | None = Field(default=None, alias="walletType")


class WalletSignalResponse(BaseModel):
    """Ids of the tasks a signal resumed or re-evaluated."""

    model_config = ConfigDict(populate_by_name=True)

    task_ids: list[str] = Field(alias="taskIds")
