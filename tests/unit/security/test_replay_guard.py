"""Replay guard tests: timestamp window, strict nonces, content signatures."""

import pytest

from delivery_guard.governance.audit_models import SecurityEventType, Severity
from delivery_guard.infrastructure.memory.replay_store import InMemoryReplayWindowStore
from delivery_guard.security.exceptions import (
    DuplicateRequestError,
    HeaderRequiredError,
    NonceReusedError,
    ReplayStaleError,
)
from delivery_guard.security.replay_guard import ReplayGuard, normalize_body, request_signature


@pytest.fixture
def replay_store(clock):
    return InMemoryReplayWindowStore(clock=clock)


@pytest.fixture
def guard(replay_store, audit_logger, clock):
    return ReplayGuard(replay_store, audit_logger, clock=clock)


def _check(guard, clock, **overrides):
    params = {
        "method": "POST",
        "path": "/deliveries/D1/transitions",
        "body": {"target_state": "CANCELLED"},
        "actor_id": "C1",
        "timestamp_header": str(int(clock.now)),
    }
    params.update(overrides)
    return guard.check(**params)


async def test_safe_methods_are_not_checked(guard, clock):
    assert await _check(guard, clock, method="GET", timestamp_header=None) is None


async def test_fresh_request_passes(guard, clock):
    result = await _check(guard, clock)
    assert result.client_timestamp == int(clock.now)
    assert result.window_seconds == 300
    assert result.signature is not None


async def test_missing_timestamp_is_required_header(guard, clock, audit_logger, audit_repository):
    with pytest.raises(HeaderRequiredError) as exc_info:
        await _check(guard, clock, timestamp_header=None)
    assert exc_info.value.header == "X-Timestamp"
    await audit_logger.drain()
    assert audit_repository.security_events[0].severity is Severity.LOW


async def test_stale_timestamp_rejected(guard, clock, audit_logger, audit_repository):
    with pytest.raises(ReplayStaleError):
        await _check(guard, clock, timestamp_header=str(int(clock.now) - 301))
    await audit_logger.drain()
    [event] = audit_repository.security_events
    assert event.event_type is SecurityEventType.REPLAY_ATTACK_ATTEMPT
    assert event.severity is Severity.HIGH


async def test_future_timestamp_rejected(guard, clock):
    with pytest.raises(ReplayStaleError):
        await _check(guard, clock, timestamp_header=str(int(clock.now) + 400))


async def test_unparsable_timestamp_rejected(guard, clock):
    with pytest.raises(ReplayStaleError):
        await _check(guard, clock, timestamp_header="yesterday")


async def test_strict_window_is_tighter(guard, clock):
    ts = str(int(clock.now) - 200)
    await _check(guard, clock, timestamp_header=ts, body={"n": 1})
    with pytest.raises(ReplayStaleError):
        await _check(guard, clock, timestamp_header=ts, body={"n": 2}, strict=True, nonce_header="n-1")


async def test_identical_request_in_window_is_duplicate(guard, clock):
    await _check(guard, clock)
    with pytest.raises(DuplicateRequestError):
        await _check(guard, clock)


async def test_same_body_different_second_is_not_duplicate(guard, clock):
    await _check(guard, clock)
    clock.advance(1)
    await _check(guard, clock)


async def test_signature_check_can_be_skipped(guard, clock):
    await _check(guard, clock, check_signature=False)
    result = await _check(guard, clock, check_signature=False)
    assert result.signature is None


async def test_strict_requires_nonce(guard, clock):
    with pytest.raises(HeaderRequiredError) as exc_info:
        await _check(guard, clock, strict=True)
    assert exc_info.value.header == "X-Nonce"


async def test_reused_nonce_is_critical(guard, clock, audit_logger, audit_repository):
    await _check(guard, clock, strict=True, nonce_header="abc", check_signature=False)
    with pytest.raises(NonceReusedError):
        await _check(
            guard, clock, strict=True, nonce_header="abc", check_signature=False, body={"other": 1}
        )
    await audit_logger.drain()
    [event] = audit_repository.security_events
    assert event.severity is Severity.CRITICAL
    assert event.metadata["nonce"] == "abc"


async def test_nonces_are_scoped_per_actor(guard, clock):
    await _check(guard, clock, strict=True, nonce_header="abc", actor_id="C1")
    await _check(guard, clock, strict=True, nonce_header="abc", actor_id="C2")


async def test_nonce_usable_again_after_window(guard, clock):
    await _check(guard, clock, strict=True, nonce_header="abc", check_signature=False)
    clock.advance(121)
    await _check(guard, clock, strict=True, nonce_header="abc", check_signature=False)


def test_signature_ignores_key_order():
    first = request_signature(method="post", path="/p", body={"a": 1, "b": 2}, actor_id="C1", bucket=10)
    second = request_signature(method="POST", path="/p", body={"b": 2, "a": 1}, actor_id="C1", bucket=10)
    assert first == second
    assert normalize_body({"b": 2, "a": 1}) == '{"a":1,"b":2}'


def test_signature_depends_on_actor():
    first = request_signature(method="POST", path="/p", body={}, actor_id="C1", bucket=10)
    second = request_signature(method="POST", path="/p", body={}, actor_id="C2", bucket=10)
    assert first != second
