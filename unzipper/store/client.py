"""Artifact store HTTP client.

Uses httpx for async HTTP calls. Every method takes the caller-supplied
access token, which is sent verbatim as the Authorization header and is
never logged.

This client handles the three operations the unzip job needs:
1. Fetch the zipped artifact bundle of a build
2. Put a single extracted artifact
3. Delete the zipped bundle

Each call is retried on transport errors and 5xx responses. This covers
individual HTTP flakiness only; whole-job retries belong to Celery.
All three operations are idempotent, so retrying them is always safe.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional
from urllib.parse import quote

import httpx

from unzipper.core.errors import StoreError

logger = logging.getLogger(__name__)

ZIP_FILE = "SD_ARTIFACT.zip"
RETRY_LIMIT = 5
API_TIMEOUT = 30
# Linear backoff between attempts: 0.5s, 1.0s, 1.5s, ...
RETRY_BACKOFF_SECONDS = 0.5


class ArtifactStoreClient:
    """Async client for ``{base_url}/v1/builds/{build_id}/ARTIFACTS``.

    Use as an async context manager so the underlying connection pool is
    closed when the job finishes:

        async with ArtifactStoreClient(settings.store_url) as store:
            bundle = await store.fetch_bundle(build_id, token)
    """

    def __init__(
        self,
        base_url: str,
        retry_limit: int = RETRY_LIMIT,
        timeout: float = API_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = f"{base_url.rstrip('/')}/v1"
        self.retry_limit = retry_limit
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ArtifactStoreClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_bundle(self, build_id: int, token: str) -> bytes:
        """Download the zipped artifacts of a build as raw bytes."""
        response = await self._request(
            "GET",
            _artifact_path(build_id, ZIP_FILE),
            headers={"Authorization": token},
        )
        return response.content

    async def put_artifact(
        self,
        build_id: int,
        token: str,
        name: str,
        payload: bytes,
    ) -> int:
        """Upload one extracted artifact. Returns the response status code."""
        response = await self._request(
            "PUT",
            _artifact_path(build_id, name),
            headers={"Authorization": token, "Content-Type": "text/plain"},
            content=payload,
        )
        return response.status_code

    async def delete_bundle(self, build_id: int, token: str) -> int:
        """Delete the zipped artifacts of a build. Returns the status code."""
        response = await self._request(
            "DELETE",
            _artifact_path(build_id, ZIP_FILE),
            headers={"Authorization": token},
        )
        return response.status_code

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send a request, retrying transport errors and 5xx responses.

        Raises:
            StoreError: On a non-2xx response (message is the response body
                text), when every attempt failed at the transport level, or on
                any other request error such as an undecodable body.
        """
        attempts = self.retry_limit + 1
        for attempt in range(1, attempts + 1):
            try:
                response = await self._client.request(method, path, **kwargs)
            except httpx.RequestError as exc:
                # Decoding and redirect errors will not change on a retry.
                if isinstance(exc, httpx.TransportError) and attempt < attempts:
                    logger.warning(
                        "Store %s %s attempt %d/%d failed: %s",
                        method, path, attempt, attempts, exc,
                    )
                    await asyncio.sleep(RETRY_BACKOFF_SECONDS * attempt)
                    continue
                raise StoreError(str(exc) or type(exc).__name__) from exc

            if response.is_success:
                return response

            if response.status_code >= 500 and attempt < attempts:
                logger.warning(
                    "Store %s %s attempt %d/%d returned %d",
                    method, path, attempt, attempts, response.status_code,
                )
                await asyncio.sleep(RETRY_BACKOFF_SECONDS * attempt)
                continue

            raise StoreError(response.text, status_code=response.status_code)

        # Unreachable: the loop either returns or raises on the last attempt.
        raise StoreError(f"{method} {path} failed after {attempts} attempts")


def _artifact_path(build_id: int, name: str) -> str:
    return f"/builds/{build_id}/ARTIFACTS/{quote(name, safe='/')}"
