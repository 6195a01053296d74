"""FastAPI dependency injection helpers.

Usage in a route::

    @router.get("/tasks")
    async def list_tasks(
        manager: Annotated[QueueManager, Depends(get_manager)],
    ) -> ...:
        ...
"""

from __future__ import annotations

from fastapi import Request

from swap_queue.engine.client import QueueManager  # noqa: TC001
from swap_queue.errors.definitions import ErrManagerNotReady


def get_manager(request: Request) -> QueueManager:
    """Retrieve the queue manager from ``app.state``.

    The manager is stored on ``app.state.manager`` during lifespan startup.

    Raises:
        QueueError: ``ErrManagerNotReady`` if startup has not completed.
    """
    manager: QueueManager | None = getattr(request.app.state, "manager", None)
    if manager is None or not manager.is_initialized:
        raise ErrManagerNotReady
    return manager
