"""Tests for the artifact store client.

Requests are served by httpx.MockTransport so no real network calls are
made. The retry backoff is patched to zero to keep the suite fast.
"""

import httpx
import pytest

from unzipper.core.errors import StoreError
from unzipper.store import client as client_module
from unzipper.store.client import ZIP_FILE, ArtifactStoreClient

BUILD_ID = 1234
TOKEN = "dummytoken"
BASE_URL = "http://store.test"


@pytest.fixture(autouse=True)
def _no_backoff(monkeypatch):
    monkeypatch.setattr(client_module, "RETRY_BACKOFF_SECONDS", 0)


def _store(handler, retry_limit: int = 5) -> ArtifactStoreClient:
    return ArtifactStoreClient(
        BASE_URL,
        retry_limit=retry_limit,
        transport=httpx.MockTransport(handler),
    )


class TestFetchBundle:
    @pytest.mark.asyncio
    async def test_returns_raw_bytes(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=b"PK\x03\x04zipdata")

        async with _store(handler) as store:
            body = await store.fetch_bundle(BUILD_ID, TOKEN)

        assert body == b"PK\x03\x04zipdata"
        assert seen[0].method == "GET"
        assert str(seen[0].url) == f"{BASE_URL}/v1/builds/{BUILD_ID}/ARTIFACTS/{ZIP_FILE}"
        assert seen[0].headers["Authorization"] == TOKEN

    @pytest.mark.asyncio
    async def test_error_carries_response_body(self):
        def handler(request):
            return httpx.Response(404, text="File not found")

        async with _store(handler) as store:
            with pytest.raises(StoreError) as exc_info:
                await store.fetch_bundle(BUILD_ID, TOKEN)

        assert str(exc_info.value) == "File not found"
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        calls = 0

        def handler(request):
            nonlocal calls
            calls += 1
            return httpx.Response(403, text="Forbidden")

        async with _store(handler) as store:
            with pytest.raises(StoreError):
                await store.fetch_bundle(BUILD_ID, TOKEN)

        assert calls == 1


class TestPutArtifact:
    @pytest.mark.asyncio
    async def test_puts_payload_as_text_plain(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(202)

        async with _store(handler) as store:
            ack = await store.put_artifact(BUILD_ID, TOKEN, "reports/test.txt", b"hello")

        assert ack == 202
        request = seen[0]
        assert request.method == "PUT"
        assert request.url.path == f"/v1/builds/{BUILD_ID}/ARTIFACTS/reports/test.txt"
        assert request.headers["Content-Type"] == "text/plain"
        assert request.headers["Authorization"] == TOKEN
        assert request.content == b"hello"

    @pytest.mark.asyncio
    async def test_retries_server_errors_then_succeeds(self):
        responses = iter([
            httpx.Response(503, text="busy"),
            httpx.Response(502, text="bad gateway"),
            httpx.Response(202),
        ])

        def handler(request):
            return next(responses)

        async with _store(handler) as store:
            ack = await store.put_artifact(BUILD_ID, TOKEN, "a.txt", b"a")

        assert ack == 202

    @pytest.mark.asyncio
    async def test_gives_up_after_retry_limit(self):
        calls = 0

        def handler(request):
            nonlocal calls
            calls += 1
            return httpx.Response(500, text="internal error")

        async with _store(handler, retry_limit=2) as store:
            with pytest.raises(StoreError, match="internal error"):
                await store.put_artifact(BUILD_ID, TOKEN, "a.txt", b"a")

        assert calls == 3

    @pytest.mark.asyncio
    async def test_retries_transport_errors(self):
        calls = 0

        def handler(request):
            nonlocal calls
            calls += 1
            if calls < 3:
                raise httpx.ConnectError("Connection refused", request=request)
            return httpx.Response(202)

        async with _store(handler) as store:
            ack = await store.put_artifact(BUILD_ID, TOKEN, "a.txt", b"a")

        assert ack == 202
        assert calls == 3

    @pytest.mark.asyncio
    async def test_exhausted_transport_errors_raise_store_error(self):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        async with _store(handler, retry_limit=1) as store:
            with pytest.raises(StoreError, match="Connection refused") as exc_info:
                await store.put_artifact(BUILD_ID, TOKEN, "a.txt", b"a")

        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name,raw_path",
        [
            ("report?v=1.html", "report%3Fv%3D1.html"),
            ("notes#1.txt", "notes%231.txt"),
            ("my report.txt", "my%20report.txt"),
        ],
    )
    async def test_artifact_name_is_percent_encoded(self, name, raw_path):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(202)

        async with _store(handler) as store:
            await store.put_artifact(BUILD_ID, TOKEN, name, b"x")

        request = seen[0]
        assert request.url.raw_path == (
            f"/v1/builds/{BUILD_ID}/ARTIFACTS/{raw_path}".encode()
        )
        assert request.url.query == b""
        assert request.url.fragment == ""

    @pytest.mark.asyncio
    async def test_decoding_error_raises_store_error_without_retry(self):
        calls = 0

        def handler(request):
            nonlocal calls
            calls += 1
            raise httpx.DecodingError("bad gzip stream", request=request)

        async with _store(handler, retry_limit=3) as store:
            with pytest.raises(StoreError, match="bad gzip stream") as exc_info:
                await store.put_artifact(BUILD_ID, TOKEN, "a.txt", b"a")

        assert calls == 1
        assert exc_info.value.status_code is None


class TestDeleteBundle:
    @pytest.mark.asyncio
    async def test_deletes_zip(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        async with _store(handler) as store:
            ack = await store.delete_bundle(BUILD_ID, TOKEN)

        assert ack == 204
        assert seen[0].method == "DELETE"
        assert seen[0].url.path == f"/v1/builds/{BUILD_ID}/ARTIFACTS/{ZIP_FILE}"

    @pytest.mark.asyncio
    async def test_error_carries_response_body(self):
        def handler(request):
            return httpx.Response(401, text="Unauthorized")

        async with _store(handler) as store:
            with pytest.raises(StoreError, match="Unauthorized"):
                await store.delete_bundle(BUILD_ID, TOKEN)


def test_base_url_trailing_slash():
    store = ArtifactStoreClient("http://store.test/")
    assert store.base_url == "http://store.test/v1"
