"""Fixtures for API unit tests: seeded in-memory container, AsyncClient, signed headers."""

import time
import uuid
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from delivery_guard.config.settings import AppSettings
from delivery_guard.core.container import build_container
from delivery_guard.main import app

BROWSER = "Mozilla/5.0 (X11; Linux x86_64) delivery-app/4.2"


@pytest.fixture
def container(store, audit_repository):
    """In-memory container; risk delays are recorded instead of slept."""
    container = build_container(
        AppSettings(environment="test"),
        store=store,
        audit_repository=audit_repository,
        sleep=AsyncMock(),
    )
    return container


@pytest.fixture
async def async_client(container):
    app.state.container = container
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await container.audit_logger.drain()
    app.state.container = None


@pytest.fixture
def make_headers():
    """Identity plus fresh replay headers. Each call gets a new nonce."""

    def _make(actor_id="C1", role="customer", idempotency_key=None, **extra):
        headers = {
            "X-Actor-ID": actor_id,
            "X-Actor-Role": role,
            "X-Timestamp": str(int(time.time())),
            "X-Nonce": uuid.uuid4().hex,
            "User-Agent": BROWSER,
        }
        if idempotency_key is not None:
            headers["Idempotency-Key"] = idempotency_key
        headers.update(extra)
        return headers

    return _make
