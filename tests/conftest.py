"""Shared test fixtures for the unzip worker test suite.

The store is mocked with AsyncMock so job tests never touch the network.
ZIP bundles are built in memory with zipfile.
"""

import io
import zipfile
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from unzipper.heartbeat import Heartbeat
from unzipper.main import create_app


def _make_zip(files: list[tuple[str, bytes]]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, payload in files:
            zf.writestr(name, payload)
    return buffer.getvalue()


@pytest.fixture
def make_zip():
    """Return a helper that builds ZIP bytes from (name, payload) pairs."""
    return _make_zip


@pytest.fixture
def two_file_bundle() -> bytes:
    return _make_zip([
        ("test-artifact1.txt", b"test artifact 1"),
        ("test-artifact2.txt", b"test artifact 2"),
    ])


@pytest.fixture
def mock_store() -> AsyncMock:
    """Store double exposing fetch_bundle, put_artifact and delete_bundle."""
    store = AsyncMock()
    store.put_artifact.return_value = 202
    store.delete_bundle.return_value = 202
    return store


@pytest.fixture
def heartbeat() -> Heartbeat:
    return Heartbeat()


@pytest.fixture
def app(heartbeat):
    return create_app(heartbeat)


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP client wired to the heartbeat app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
