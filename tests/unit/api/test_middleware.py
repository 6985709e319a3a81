"""Tests for API middleware: correlation ID, actor identity, honeypot."""

from delivery_guard.governance.audit_models import SecurityEventType
from delivery_guard.risk.models import RiskTier


async def test_correlation_id_generated(async_client):
    r = await async_client.get("/health")
    assert r.status_code == 200
    assert len(r.headers["X-Correlation-ID"]) > 0


async def test_correlation_id_preserved_when_passed(async_client):
    r = await async_client.get("/health", headers={"X-Correlation-ID": "my-correlation-123"})
    assert r.headers.get("X-Correlation-ID") == "my-correlation-123"
    assert r.json()["correlation_id"] == "my-correlation-123"


async def test_mutating_request_without_actor_is_401(async_client):
    r = await async_client.post("/deliveries/D1/transitions", json={"target_state": "CANCELLED"})
    assert r.status_code == 401
    assert r.json() == {"detail": "Authentication required"}


async def test_unknown_role_is_401(async_client, make_headers):
    r = await async_client.post(
        "/deliveries/D1/transitions",
        json={"target_state": "CANCELLED"},
        headers=make_headers(role="superuser"),
    )
    assert r.status_code == 401


async def test_read_without_actor_is_401_on_protected_route(async_client):
    r = await async_client.get("/security/risk/C1")
    assert r.status_code == 401


async def test_honeypot_flags_caller(async_client, container, audit_repository):
    r = await async_client.get("/wp-admin")
    assert r.status_code == 404
    assert r.json() == {"detail": "Not found"}
    assert container.metrics.counter("honeypot_hits") == 1
    assessment = container.risk_scorer.assessment("127.0.0.1")
    assert assessment.score == 50
    assert assessment.tier is RiskTier.HIGH
    await container.audit_logger.drain()
    assert audit_repository.security_events[-1].event_type is SecurityEventType.HONEYPOT_ACCESS


async def test_honeypot_catches_any_method_before_auth(async_client, container):
    r = await async_client.post("/.env", content=b"x")
    assert r.status_code == 404
    assert container.metrics.counter("honeypot_hits") == 1


async def test_request_latency_recorded(async_client, container):
    await async_client.get("/health")
    histograms = container.metrics.export_metrics()["histograms"]
    assert histograms["request_latency_ms"]["count"] == 1
