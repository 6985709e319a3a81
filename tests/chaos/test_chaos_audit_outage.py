"""Chaos: audit store and alert broker outages. Primary outcomes must not change."""

import asyncio
import time
import uuid
from unittest.mock import AsyncMock

from httpx import ASGITransport, AsyncClient

from delivery_guard.application.transition_service import TransitionService
from delivery_guard.config.settings import AppSettings
from delivery_guard.core.container import build_container
from delivery_guard.domain.models.resource import DeliveryState, ResourceKind, Role
from delivery_guard.governance.audit_logger import AuditLogger
from delivery_guard.main import app
from delivery_guard.security.actor import Actor
from delivery_guard.security.ownership import OwnershipGate


async def test_transition_commits_when_audit_store_is_down(store, metrics):
    repository = AsyncMock()
    repository.save = AsyncMock(side_effect=ConnectionError("audit db down"))
    repository.save_security_event = AsyncMock(side_effect=ConnectionError("audit db down"))
    audit_logger = AuditLogger(repository=repository)
    service = TransitionService(store, OwnershipGate(store, audit_logger), audit_logger, metrics)

    result = await service.transition(Actor("C1", Role.CUSTOMER), ResourceKind.DELIVERY, "D1", "CANCELLED")
    await audit_logger.drain()

    assert result.state is DeliveryState.CANCELLED
    assert (await store.get(ResourceKind.DELIVERY, "D1")).state is DeliveryState.CANCELLED
    assert repository.save.await_count == 1


async def test_slow_audit_store_does_not_block_transition(store, metrics):
    release = asyncio.Event()

    async def slow_save(record):
        await release.wait()

    repository = AsyncMock()
    repository.save = AsyncMock(side_effect=slow_save)
    audit_logger = AuditLogger(repository=repository)
    service = TransitionService(store, OwnershipGate(store, audit_logger), audit_logger, metrics)

    result = await asyncio.wait_for(
        service.transition(Actor("C1", Role.CUSTOMER), ResourceKind.DELIVERY, "D1", "CANCELLED"),
        timeout=1.0,
    )
    assert result.state is DeliveryState.CANCELLED
    assert audit_logger.pending_count == 1
    release.set()
    await audit_logger.drain()
    assert audit_logger.pending_count == 0


async def test_api_succeeds_when_alert_broker_is_down(store, audit_repository):
    publisher = AsyncMock()
    publisher.publish_alert = AsyncMock(side_effect=ConnectionError("broker down"))
    container = build_container(
        AppSettings(environment="test"),
        store=store,
        audit_repository=audit_repository,
        alert_publisher=publisher,
        sleep=AsyncMock(),
    )
    app.state.container = container
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            r = await client.post(
                "/payments/P2/transitions",
                json={"target_state": "COMPLETED"},
                headers={
                    "X-Actor-ID": "payments-worker",
                    "X-Actor-Role": "system",
                    "X-Timestamp": str(int(time.time())),
                    "X-Nonce": uuid.uuid4().hex,
                    "Idempotency-Key": "complete-P2",
                    "User-Agent": "payments-worker/1.0",
                },
            )
        await container.audit_logger.drain()
    finally:
        app.state.container = None

    # Amount mismatch is a critical event; the failed alert does not change the 400.
    assert r.status_code == 400
    publisher.publish_alert.assert_awaited()
    assert audit_repository.security_events[-1].event_type.value == "PAYMENT_AMOUNT_MISMATCH"
