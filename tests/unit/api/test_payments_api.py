"""Payment API tests: idempotent creation, strict replay protection, rate limiting, transitions."""

import asyncio
import uuid

from delivery_guard.domain.models.resource import PaymentState, ResourceKind
from delivery_guard.risk.models import FlagType

PAYMENT = {"delivery_id": "D4", "amount": "120.00", "method": "upi"}


async def test_create_payment(async_client, make_headers, store):
    r = await async_client.post("/payments", json=PAYMENT, headers=make_headers(idempotency_key="pay-1"))
    assert r.status_code == 201
    data = r.json()
    assert data["delivery_id"] == "D4"
    assert data["state"] == "PENDING"
    assert "Idempotent-Replayed" not in r.headers
    stored = await store.get(ResourceKind.PAYMENT, data["payment_id"])
    assert stored.state is PaymentState.PENDING


async def test_same_key_returns_identical_response(async_client, make_headers, store, container):
    first = await async_client.post("/payments", json=PAYMENT, headers=make_headers(idempotency_key="pay-1"))
    second = await async_client.post("/payments", json=PAYMENT, headers=make_headers(idempotency_key="pay-1"))
    assert first.status_code == second.status_code == 201
    assert second.content == first.content
    assert second.headers["Idempotent-Replayed"] == "true"
    assert len(await store.list_payments_for_delivery("D4")) == 1
    assert container.metrics.counter("idempotent_replays") == 1


async def test_same_key_retries_are_replayed_not_rate_limited(async_client, make_headers, store, container):
    responses = [
        await async_client.post("/payments", json=PAYMENT, headers=make_headers(idempotency_key="pay-1"))
        for _ in range(3)
    ]
    assert [r.status_code for r in responses] == [201, 201, 201]
    assert responses[1].content == responses[0].content
    assert responses[2].content == responses[0].content
    assert len(await store.list_payments_for_delivery("D4")) == 1
    await asyncio.sleep(0)
    flags = {f.flag_type for f in container.risk_scorer.assessment("C1").flags}
    assert FlagType.RAPID_REQUESTS not in flags
    assert container.metrics.counter("rate_limit_exceeded", label="scope", label_value="payment") == 0


async def test_missing_idempotency_key_is_400(async_client, make_headers, store):
    r = await async_client.post("/payments", json=PAYMENT, headers=make_headers())
    assert r.status_code == 400
    assert r.json() == {"detail": "Idempotency-Key header is required"}
    assert await store.list_payments_for_delivery("D4") == []


async def test_missing_nonce_is_400(async_client, make_headers):
    headers = make_headers(idempotency_key="pay-1")
    del headers["X-Nonce"]
    r = await async_client.post("/payments", json=PAYMENT, headers=headers)
    assert r.status_code == 400
    assert r.json() == {"detail": "X-Nonce header is required"}


async def test_stale_timestamp_is_409(async_client, make_headers, store):
    headers = make_headers(idempotency_key="pay-1")
    headers["X-Timestamp"] = str(int(headers["X-Timestamp"]) - 180)
    r = await async_client.post("/payments", json=PAYMENT, headers=headers)
    assert r.status_code == 409
    assert await store.list_payments_for_delivery("D4") == []


async def test_reused_nonce_is_409(async_client, make_headers):
    nonce = uuid.uuid4().hex
    first = await async_client.post(
        "/payments", json=PAYMENT, headers=make_headers(idempotency_key="pay-1", **{"X-Nonce": nonce})
    )
    second = await async_client.post(
        "/payments", json=PAYMENT, headers=make_headers(idempotency_key="pay-2", **{"X-Nonce": nonce})
    )
    assert first.status_code == 201
    assert second.status_code == 409


async def test_amount_mismatch_is_400(async_client, make_headers):
    r = await async_client.post(
        "/payments",
        json={**PAYMENT, "amount": "99.00"},
        headers=make_headers(idempotency_key="pay-1"),
    )
    assert r.status_code == 400
    assert r.json() == {"detail": "Payment verification failed"}


async def test_failed_attempt_does_not_consume_key(async_client, make_headers):
    bad = await async_client.post(
        "/payments",
        json={**PAYMENT, "amount": "99.00"},
        headers=make_headers(idempotency_key="pay-1"),
    )
    good = await async_client.post("/payments", json=PAYMENT, headers=make_headers(idempotency_key="pay-1"))
    assert bad.status_code == 400
    assert good.status_code == 201
    assert "Idempotent-Replayed" not in good.headers


async def test_undelivered_delivery_is_400(async_client, make_headers):
    r = await async_client.post(
        "/payments",
        json={"delivery_id": "D1", "amount": "10.00", "method": "card"},
        headers=make_headers(idempotency_key="pay-1"),
    )
    assert r.status_code == 400
    assert r.json() == {"detail": "Payment not allowed"}


async def test_courier_cannot_create_payment(async_client, make_headers):
    r = await async_client.post(
        "/payments", json=PAYMENT, headers=make_headers(actor_id="K1", role="courier", idempotency_key="pay-1")
    )
    assert r.status_code == 403


async def test_third_payment_attempt_in_window_is_429(async_client, make_headers, container):
    for key in ("pay-1", "pay-2"):
        r = await async_client.post(
            "/payments",
            json={**PAYMENT, "amount": "99.00"},
            headers=make_headers(idempotency_key=key),
        )
        assert r.status_code == 400
        await container.audit_logger.drain()
    # Risk score is now 10 (two INVALID_INPUT flags), still LOW.
    r = await async_client.post("/payments", json=PAYMENT, headers=make_headers(idempotency_key="pay-3"))
    assert r.status_code == 429
    assert r.json() == {"detail": "Too many requests"}


async def test_system_completes_payment(async_client, make_headers, store):
    r = await async_client.post(
        "/payments/P1/transitions",
        json={"target_state": "COMPLETED"},
        headers=make_headers(actor_id="payments-worker", role="system", idempotency_key="complete-P1"),
    )
    assert r.status_code == 200
    assert r.json()["state"] == "COMPLETED"
    assert (await store.get(ResourceKind.PAYMENT, "P1")).state is PaymentState.COMPLETED


async def test_completion_amount_mismatch_is_400(async_client, make_headers, store):
    r = await async_client.post(
        "/payments/P2/transitions",
        json={"target_state": "COMPLETED"},
        headers=make_headers(actor_id="payments-worker", role="system", idempotency_key="complete-P2"),
    )
    assert r.status_code == 400
    assert r.json() == {"detail": "Payment verification failed"}
    assert (await store.get(ResourceKind.PAYMENT, "P2")).state is PaymentState.PROCESSING


async def test_payment_transition_requires_idempotency_key(async_client, make_headers):
    r = await async_client.post(
        "/payments/P1/transitions",
        json={"target_state": "COMPLETED"},
        headers=make_headers(actor_id="payments-worker", role="system"),
    )
    assert r.status_code == 400


async def test_failed_payment_flags_payer(async_client, make_headers, container):
    r = await async_client.post(
        "/payments/P2/transitions",
        json={"target_state": "FAILED"},
        headers=make_headers(actor_id="payments-worker", role="system", idempotency_key="fail-P2"),
    )
    assert r.status_code == 200
    assert container.risk_scorer.assessment("C1").score == 25
