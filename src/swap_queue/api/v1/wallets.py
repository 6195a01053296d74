"""V1 wallet signal endpoints, fed by the UI's wallet integration."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from swap_queue.api.dependencies import get_manager
from swap_queue.api.v1.schemas import (
    ErrorResponse,
    WalletConnectedRequest,
    WalletDisconnectedRequest,
    WalletSignalResponse,
)
from swap_queue.engine.client import QueueManager  # noqa: TC001

router = APIRouter(
    prefix="/wallets",
    tags=["wallets"],
    responses={503: {"model": ErrorResponse}},
)


@router.post("/connected")
async def wallet_connected(
    body: WalletConnectedRequest,
    manager: Annotated[QueueManager, Depends(get_manager)],
) -> dict[str, Any]:
    """Report a wallet connection; parked tasks it unblocks resume."""
    resumed = await manager.on_wallet_connected(body.wallet_type, body.chain)
    return WalletSignalResponse(task_ids=resumed).model_dump(by_alias=True)


@router.post("/disconnected")
async def wallet_disconnected(
    body: WalletDisconnectedRequest,
    manager: Annotated[QueueManager, Depends(get_manager)],
) -> dict[str, Any]:
    """Report a wallet disconnect; network-dependent waits are re-evaluated."""
    touched = await manager.on_wallet_disconnected(body.wallet_type)
    return WalletSignalResponse(task_ids=touched).model_dump(by_alias=True)
