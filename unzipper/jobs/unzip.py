"""Batched unzip-upload job.

Turns one zipped artifact bundle into many individual artifact uploads:

  1. Fetch the bundle from the store
  2. Extract it in memory into ordered ArtifactEntry records
  3. Upload the entries in chunks of ``parallel_upload_limit``: chunks run
     one after another, the entries of a chunk run concurrently
  4. Delete the bundle

Steps 1 to 3 are fatal: the error is logged and re-raised so Celery can retry
the whole job. A failing chunk is allowed to settle before the error is
raised (in-flight uploads are not cancelled) and no later chunk starts.

Step 4 is best effort. Once every artifact exists at its final path a
leftover bundle is harmless, and failing here would make Celery redo every
upload, so the error is only logged.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol, Sequence

from unzipper.core.config import Settings
from unzipper.core.logging import bind_build_id
from unzipper.jobs.archive import extract_entries
from unzipper.jobs.types import ArtifactEntry
from unzipper.store.client import ArtifactStoreClient

logger = logging.getLogger(__name__)


class ArtifactStore(Protocol):
    """The store operations the job depends on."""

    async def fetch_bundle(self, build_id: int, token: str) -> bytes: ...

    async def put_artifact(
        self, build_id: int, token: str, name: str, payload: bytes
    ) -> object: ...

    async def delete_bundle(self, build_id: int, token: str) -> object: ...


def chunk_entries(
    entries: Sequence[ArtifactEntry],
    limit: int,
) -> list[list[ArtifactEntry]]:
    """Split entries into ordered, contiguous chunks of at most ``limit``.

    A non-positive limit yields exactly one chunk holding every entry
    (even when there are none).
    """
    if limit <= 0:
        return [list(entries)]
    return [list(entries[i:i + limit]) for i in range(0, len(entries), limit)]


async def upload_entries(
    store: ArtifactStore,
    build_id: int,
    token: str,
    entries: Sequence[ArtifactEntry],
    limit: int,
) -> None:
    """Upload entries chunk by chunk.

    Raises the first failure (in entry order) of the first failing chunk,
    after all uploads of that chunk have settled.
    """
    chunks = chunk_entries(entries, limit)
    logger.info(
        "Uploading %d artifacts in %d chunk(s) (limit=%d)",
        len(entries), len(chunks), limit,
    )

    for index, chunk in enumerate(chunks, start=1):
        results = await asyncio.gather(
            *(
                store.put_artifact(build_id, token, entry.name, entry.payload)
                for entry in chunk
            ),
            return_exceptions=True,
        )
        failures = [
            (entry, result)
            for entry, result in zip(chunk, results)
            if isinstance(result, BaseException)
        ]
        if failures:
            entry, error = failures[0]
            logger.error(
                "Chunk %d/%d: %d of %d uploads failed, first failure on %s",
                index, len(chunks), len(failures), len(chunk), entry.name,
            )
            raise error

        logger.debug("Chunk %d/%d uploaded (%d artifacts)", index, len(chunks), len(chunk))


async def unzip_bundle(
    build_id: int,
    token: str,
    store: ArtifactStore,
    parallel_upload_limit: int,
) -> None:
    """Republish every file of a build's bundle and delete the bundle.

    Args:
        build_id: ID of the build that owns the artifacts.
        token: Access token used for every store call. Never logged.
        store: Store client (see ArtifactStore).
        parallel_upload_limit: Chunk size; non-positive means one chunk.

    Raises:
        StoreError: If fetching the bundle or uploading an artifact failed.
        ArchiveError: If the bundle is not a valid ZIP archive.
    """
    with bind_build_id(build_id):
        logger.info("Job:unzip started. build_id=%s", build_id)

        try:
            bundle = await store.fetch_bundle(build_id, token)
            entries = extract_entries(bundle)
            await upload_entries(store, build_id, token, entries, parallel_upload_limit)
        except Exception as exc:
            logger.error("Job:unzip failed. build_id=%s: %s", build_id, exc)
            raise

        try:
            await store.delete_bundle(build_id, token)
        except Exception as exc:
            logger.error(
                "Could not delete artifact bundle. build_id=%s: %s", build_id, exc
            )

        logger.info("Job:unzip finished. build_id=%s", build_id)


async def run_unzip_job(build_id: int, token: str, settings: Settings) -> None:
    """Run the unzip job against the store configured in ``settings``."""
    async with ArtifactStoreClient(
        settings.store_url,
        retry_limit=settings.store_retry_limit,
        timeout=settings.store_timeout,
    ) as store:
        await unzip_bundle(build_id, token, store, settings.parallel_upload_limit)
