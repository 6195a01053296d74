"""V1 task endpoints: list, inspect, enqueue, retry and clear history."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query

from swap_queue.api.dependencies import get_manager
from swap_queue.api.v1.schemas import ErrorResponse, TaskCreatedResponse, TaskCreateRequest
from swap_queue.engine.client import QueueManager  # noqa: TC001
from swap_queue.models.task import TaskStatus

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)


@router.get("")
async def list_tasks(
    manager: Annotated[QueueManager, Depends(get_manager)],
    status: Annotated[TaskStatus | None, Query()] = None,
) -> list[dict[str, Any]]:
    """List tasks in insertion order, optionally filtered by status."""
    return [t.to_dict() for t in manager.list(status)]


@router.get("/{task_id}")
async def get_task(
    task_id: str,
    manager: Annotated[QueueManager, Depends(get_manager)],
) -> dict[str, Any]:
    """Get one task."""
    return manager.get(task_id).to_dict()


@router.post("", status_code=201)
async def create_task(
    body: TaskCreateRequest,
    manager: Annotated[QueueManager, Depends(get_manager)],
) -> dict[str, Any]:
    """Enqueue a task. A storage failure answers 503 and nothing is kept."""
    task_id = await manager.enqueue(body.to_spec(), strict=True)
    return TaskCreatedResponse(id=task_id).model_dump()


@router.post("/{task_id}/retry", status_code=202)
async def retry_task(
    task_id: str,
    manager: Annotated[QueueManager, Depends(get_manager)],
) -> dict[str, Any]:
    """Re-attempt a parked task's current step."""
    await manager.retry_task(task_id)
    return manager.get(task_id).to_dict()


@router.delete("/{task_id}", status_code=204)
async def remove_task(
    task_id: str,
    manager: Annotated[QueueManager, Depends(get_manager)],
) -> None:
    """Remove a completed or failed task from history."""
    await manager.remove_task(task_id)
