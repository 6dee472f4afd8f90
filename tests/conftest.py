"""Shared pytest fixtures for flatdav tests.

A single FastAPI app is created per test session to avoid duplicate
Prometheus metric registration errors (the instrumentator registers
gauges in the global prometheus_client registry).

The object store is attached to app.state manually so tests don't need
to run the full lifespan. Each test gets a fresh in-memory store.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from flatdav.config import (
    AuthConfig,
    DavConfig,
    FlatDavConfig,
    ObservabilityConfig,
    ServerConfig,
    StorageConfig,
)
from flatdav.server import create_app
from flatdav.storage.memory import MemoryObjectStore

# Upload limit used by the shared app; small so 413 paths are cheap to hit.
TEST_MAX_UPLOAD_BYTES = 1024 * 1024


@pytest.fixture(scope="session")
def config() -> FlatDavConfig:
    """Create a test FlatDavConfig with auth disabled.

    test_auth.py builds its own app with credentials configured.
    """
    return FlatDavConfig(
        server=ServerConfig(host="127.0.0.1", port=8090),
        auth=AuthConfig(),
        dav=DavConfig(max_upload_bytes=TEST_MAX_UPLOAD_BYTES),
        storage=StorageConfig(backend="memory"),
        observability=ObservabilityConfig(metrics=True, health_check=True),
    )


@pytest.fixture(scope="session")
def app(config: FlatDavConfig):
    """Create a single test FastAPI application for the whole session."""
    return create_app(config)


@pytest.fixture
async def store(app) -> MemoryObjectStore:
    """Attach a fresh in-memory object store to the shared app."""
    storage = MemoryObjectStore()
    await storage.init()
    app.state.storage = storage
    yield storage
    await storage.close()


@pytest.fixture
async def client(app, store) -> AsyncClient:
    """Create an async test client for the flatdav app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
