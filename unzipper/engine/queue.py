"""Celery application and configuration.

This is the single Celery app instance used by the worker.
Workers are started with: celery -A unzipper.engine.queue worker --loglevel=info

The broker is Redis, addressed through the topology resolved from the
QUEUE_* settings. Every broker key is prefixed with the topology's key
namespace so a clustered deployment keeps all queue keys in one slot.
Jobs return nothing, so no result backend is configured.

Settings and topology are resolved at import time: a ConfigError here
stops the worker before it consumes anything.
"""

import logging

from celery import Celery
from celery.signals import task_received, worker_init, worker_ready

from unzipper.core.config import get_queue_settings, get_settings
from unzipper.core.logging import configure_structlog
from unzipper.core.sentry import init_sentry
from unzipper.heartbeat import heartbeat
from unzipper.queue.topology import broker_url, resolve_topology, transport_options

logger = logging.getLogger(__name__)

settings = get_settings()
topology = resolve_topology(get_queue_settings())

configure_structlog(debug=settings.debug)
init_sentry(
    dsn=settings.sentry_dsn,
    environment="development" if settings.debug else "production",
)

celery_app = Celery(
    "artifact_unzip",
    broker=broker_url(topology),
    include=["unzipper.engine.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_ignore_result=True,
    # Acknowledge tasks after they complete, not when received.
    # Prevents task loss if the worker crashes mid-execution.
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # visibility_timeout MUST exceed the longest job. A large bundle with
    # retries on every call can take several minutes; 1 hour leaves room.
    broker_transport_options={
        **transport_options(topology),
        "visibility_timeout": 3600,
    },
)


# ---------------------------------------------------------------------------
# Heartbeat: record every task handed to this worker and serve the timestamp.
# task_received fires in the consumer (main) process, where the server runs.
# ---------------------------------------------------------------------------


@task_received.connect
def _record_dispatch(**kwargs):
    heartbeat.record()


@worker_init.connect
def _start_heartbeat_server(**kwargs):
    if not settings.heartbeat_enabled:
        logger.info("Heartbeat server disabled")
        return
    from unzipper.main import serve_in_background

    serve_in_background(settings.heartbeat_host, settings.heartbeat_port)


# ---------------------------------------------------------------------------
# Worker startup: verify Redis connectivity so we fail fast in the logs if
# the backing store is unreachable instead of silently waiting for jobs.
# ---------------------------------------------------------------------------


@worker_ready.connect
def _check_redis_on_startup(**kwargs):
    from unzipper.queue.topology import build_redis_client

    try:
        client = build_redis_client(topology)
        client.ping()
        logger.info("Worker Redis health check passed (%s)", topology.connection_type)
    except Exception as exc:
        logger.error("Worker Redis health check FAILED: %s", exc)
