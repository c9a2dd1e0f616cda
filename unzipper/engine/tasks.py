"""Celery task definitions for the unzip job.

The task is the bridge between the queue and the async job pipeline in
unzipper.jobs.unzip. It receives ``build_id`` and ``token``, runs the
pipeline, and hands fatal failures back to Celery for a whole-job retry.

Retry policy: up to RETRY_POLICY.retry_limit retries, RETRY_POLICY.retry_delay
seconds apart. Every store operation is idempotent, so each retry simply
starts over from fetching the bundle. When retries are exhausted the
original error is raised and the task fails.
"""

import asyncio
import logging

from unzipper.core.errors import ArchiveError, StoreError
from unzipper.engine.queue import celery_app, settings
from unzipper.jobs.types import RetryPolicy
from unzipper.jobs.unzip import run_unzip_job

logger = logging.getLogger(__name__)

RETRY_POLICY = RetryPolicy(retry_limit=3, retry_delay=5)

logger.info(
    "The setting value of PARALLEL_UPLOAD_LIMIT is %d", settings.parallel_upload_limit
)


@celery_app.task(
    name="artifact_unzip.start",
    bind=True,
    max_retries=RETRY_POLICY.retry_limit,
    default_retry_delay=RETRY_POLICY.retry_delay,
)
def unzip(self, build_id: int, token: str) -> None:
    """Unzip a build's artifact bundle and re-upload the files to the store.

    The task is synchronous (Celery workers run sync tasks by default).
    The async pipeline is executed via asyncio.run() within this sync context.

    Args:
        build_id: ID of the build that owns the artifacts.
        token: Store access token used to download and upload artifacts.
    """
    try:
        asyncio.run(run_unzip_job(build_id, token, settings))
    except (StoreError, ArchiveError) as exc:
        logger.warning(
            "Job:unzip attempt %d/%d failed for build %s: %s",
            self.request.retries + 1, self.max_retries + 1, build_id, exc,
        )
        raise self.retry(exc=exc)
