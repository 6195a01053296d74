"""Application entry point for the swap queue server."""

from __future__ import annotations

import logging
import os

import uvicorn

from swap_queue.config.settings import AppConfig


def main() -> None:
    """Start the swap queue server."""
    config = AppConfig()
    reload = os.getenv("SWAPQUEUE_RELOAD", "false").lower() in ("1", "true", "yes")
    logging.basicConfig(
        level=config.server.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "swap_queue.api.app:create_app",
        factory=True,
        host=config.server.host,
        port=config.server.port,
        reload=reload,
        log_level=config.server.log_level,
    )


if __name__ == "__main__":
    main()
