"""Delivery transition API tests."""

from delivery_guard.domain.models.resource import DeliveryState, ResourceKind
from delivery_guard.governance.audit_models import SecurityEventType


async def test_customer_cancels_pending_delivery(async_client, make_headers, store):
    r = await async_client.post(
        "/deliveries/D1/transitions",
        json={"target_state": "cancelled", "reason": "ordered twice"},
        headers=make_headers(),
    )
    assert r.status_code == 200
    data = r.json()
    assert data["resource_kind"] == "delivery"
    assert data["previous_state"] == "PENDING"
    assert data["state"] == "CANCELLED"
    assert (await store.get(ResourceKind.DELIVERY, "D1")).state is DeliveryState.CANCELLED


async def test_second_cancel_is_invalid_transition(async_client, make_headers):
    await async_client.post("/deliveries/D1/transitions", json={"target_state": "CANCELLED"}, headers=make_headers())
    r = await async_client.post(
        "/deliveries/D1/transitions",
        json={"target_state": "CANCELLED", "reason": "again"},
        headers=make_headers(),
    )
    assert r.status_code == 400
    assert r.json() == {"detail": "Invalid state transition"}


async def test_identical_request_in_same_second_is_rejected(async_client, make_headers):
    headers = make_headers(actor_id="K1", role="courier")
    first = await async_client.post("/deliveries/D2/transitions", json={"target_state": "PICKED_UP"}, headers=headers)
    second = await async_client.post("/deliveries/D2/transitions", json={"target_state": "PICKED_UP"}, headers=headers)
    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json() == {"detail": "Request rejected"}


async def test_missing_timestamp_is_400(async_client, make_headers):
    headers = make_headers()
    del headers["X-Timestamp"]
    r = await async_client.post("/deliveries/D1/transitions", json={"target_state": "CANCELLED"}, headers=headers)
    assert r.status_code == 400
    assert r.json() == {"detail": "X-Timestamp header is required"}


async def test_stale_timestamp_is_409(async_client, make_headers):
    headers = make_headers()
    headers["X-Timestamp"] = str(int(headers["X-Timestamp"]) - 1000)
    r = await async_client.post("/deliveries/D1/transitions", json={"target_state": "CANCELLED"}, headers=headers)
    assert r.status_code == 409


async def test_other_customer_gets_403(async_client, make_headers, container, audit_repository):
    r = await async_client.post(
        "/deliveries/D1/transitions",
        json={"target_state": "CANCELLED"},
        headers=make_headers(actor_id="C2"),
    )
    assert r.status_code == 403
    assert r.json() == {"detail": "Access denied"}
    await container.audit_logger.drain()
    assert SecurityEventType.UNAUTHORIZED_ACCESS in [e.event_type for e in audit_repository.security_events]


async def test_skipping_states_is_400(async_client, make_headers):
    r = await async_client.post(
        "/deliveries/D2/transitions",
        json={"target_state": "DELIVERED"},
        headers=make_headers(actor_id="K1", role="courier"),
    )
    assert r.status_code == 400


async def test_role_not_on_edge_gets_403(async_client, make_headers):
    r = await async_client.post(
        "/deliveries/D2/transitions",
        json={"target_state": "PICKED_UP"},
        headers=make_headers(actor_id="C1", role="customer"),
    )
    assert r.status_code == 403


async def test_unknown_delivery_is_404(async_client, make_headers):
    r = await async_client.post(
        "/deliveries/D404/transitions", json={"target_state": "CANCELLED"}, headers=make_headers()
    )
    assert r.status_code == 404
    assert r.json() == {"detail": "Not found"}


async def test_empty_target_state_is_422(async_client, make_headers):
    r = await async_client.post("/deliveries/D1/transitions", json={"target_state": ""}, headers=make_headers())
    assert r.status_code == 422


async def test_repeated_rejections_escalate_to_block(async_client, make_headers, container):
    for _ in range(4):
        r = await async_client.post(
            "/deliveries/D1/transitions",
            json={"target_state": "CANCELLED", "reason": "attempt"},
            headers=make_headers(actor_id="C2"),
        )
        assert r.status_code == 403
        await container.audit_logger.drain()
    r = await async_client.post(
        "/deliveries/D1/transitions",
        json={"target_state": "CANCELLED", "reason": "attempt-again"},
        headers=make_headers(actor_id="C2"),
    )
    assert r.status_code == 429
    assert container.metrics.counter("risk_blocks") == 1
