"""V1 REST API routes.

Combines all sub-routers under the ``/api/v1`` prefix.
"""

from fastapi import APIRouter

from swap_queue.api.v1.tasks import router as tasks_router
from swap_queue.api.v1.wallets import router as wallets_router

v1_router = APIRouter(prefix="/api/v1")

v1_router.include_router(tasks_router)
v1_router.include_router(wallets_router)

__all__ = ["v1_router"]
