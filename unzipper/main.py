"""Heartbeat HTTP server for the unzip worker.

The worker process serves a tiny FastAPI app next to the Celery consumer so
orchestrators can check when a job was last handed to it. uvicorn runs in a
daemon thread started from the Celery ``worker_init`` signal; it dies with
the worker.
"""

import logging
import threading
from typing import Optional

import uvicorn
from fastapi import FastAPI

from unzipper.heartbeat import Heartbeat, heartbeat as default_heartbeat
from unzipper.heartbeat import router as heartbeat_router

logger = logging.getLogger(__name__)


def create_app(heartbeat: Optional[Heartbeat] = None) -> FastAPI:
    _app = FastAPI(
        title="Artifact Unzip Worker",
        description="Liveness endpoints for the artifact unzip worker",
        version="0.1.0",
    )
    _app.state.heartbeat = heartbeat or default_heartbeat

    @_app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    _app.include_router(heartbeat_router)

    return _app


def serve_in_background(
    host: str,
    port: int,
    heartbeat: Optional[Heartbeat] = None,
) -> threading.Thread:
    """Start the heartbeat server on a daemon thread and return the thread."""
    config = uvicorn.Config(
        create_app(heartbeat),
        host=host,
        port=port,
        log_config=None,
        access_log=False,
    )
    server = uvicorn.Server(config)

    thread = threading.Thread(
        target=server.run,
        name="heartbeat-server",
        daemon=True,
    )
    thread.start()
    logger.info("Heartbeat server running on http://%s:%d", host, port)
    return thread
