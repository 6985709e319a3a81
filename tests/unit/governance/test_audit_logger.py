"""Governance tests: audit immutability, security events, fire-and-forget persistence."""

import logging
from datetime import timezone
from unittest.mock import AsyncMock

import pytest

from delivery_guard.governance.audit_logger import AuditLogger
from delivery_guard.governance.audit_models import AuditRecord, SecurityEventType, Severity


@pytest.fixture
def mock_repository():
    repo = AsyncMock()
    repo.save = AsyncMock(return_value=None)
    repo.save_security_event = AsyncMock(return_value=None)
    return repo


async def test_audit_immutability(mock_repository):
    """Audit record must not allow mutation; stored via repository."""
    audit_logger = AuditLogger(repository=mock_repository)
    await audit_logger.log_action(
        actor="C1",
        action="delivery_state_transition",
        resource_type="delivery",
        resource_id="D1",
        correlation_id="corr-1",
        old_values={"state": "PENDING"},
        new_values={"state": "CANCELLED"},
        reason="test",
        metadata={"role": "customer"},
    )
    await audit_logger.drain()
    assert mock_repository.save.await_count == 1
    record = mock_repository.save.call_args[0][0]
    assert isinstance(record, AuditRecord)
    assert record.actor == "C1"
    assert record.old_values == {"state": "PENDING"}
    assert record.new_values == {"state": "CANCELLED"}
    assert record.correlation_id == "corr-1"
    assert record.timestamp_utc.tzinfo == timezone.utc
    with pytest.raises(AttributeError):
        record.actor = "other"  # type: ignore[misc]


async def test_security_event_fields(audit_logger, audit_repository):
    event = await audit_logger.log_security_event(
        event_type=SecurityEventType.REPLAY_ATTACK_ATTEMPT,
        severity=Severity.HIGH,
        description="Duplicate request detected",
        actor_id="C1",
        correlation_id="corr-2",
        ip_address="10.0.0.1",
        user_agent="pytest",
        metadata={"path": "/payments"},
    )
    await audit_logger.drain()
    assert audit_repository.security_events == [event]
    as_dict = event.to_dict()
    assert as_dict["event_type"] == "REPLAY_ATTACK_ATTEMPT"
    assert as_dict["severity"] == "high"
    assert as_dict["metadata"] == {"path": "/payments"}


async def test_repository_failure_is_swallowed(mock_repository, caplog):
    mock_repository.save_security_event.side_effect = ConnectionError("audit store down")
    audit_logger = AuditLogger(repository=mock_repository)
    with caplog.at_level(logging.WARNING):
        await audit_logger.log_security_event(
            event_type=SecurityEventType.UNAUTHORIZED_ACCESS,
            severity=Severity.HIGH,
            description="denied",
        )
        await audit_logger.drain()
    assert audit_logger.pending_count == 0
    assert any(r.getMessage() == "security_event_persist_failed" for r in caplog.records)


async def test_critical_events_are_published(audit_repository):
    publisher = AsyncMock()
    audit_logger = AuditLogger(repository=audit_repository, alert_publisher=publisher)
    await audit_logger.log_security_event(
        event_type=SecurityEventType.PAYMENT_AMOUNT_MISMATCH,
        severity=Severity.CRITICAL,
        description="mismatch",
    )
    await audit_logger.log_security_event(
        event_type=SecurityEventType.RATE_LIMIT_EXCEEDED,
        severity=Severity.MEDIUM,
        description="slow down",
    )
    await audit_logger.drain()
    publisher.publish_alert.assert_awaited_once()
    alert = publisher.publish_alert.call_args[0][0]
    assert alert["event_type"] == "PAYMENT_AMOUNT_MISMATCH"


async def test_publisher_failure_does_not_raise(audit_repository):
    publisher = AsyncMock()
    publisher.publish_alert.side_effect = ConnectionError("broker down")
    audit_logger = AuditLogger(repository=audit_repository, alert_publisher=publisher)
    await audit_logger.log_security_event(
        event_type=SecurityEventType.CRITICAL_RISK_BLOCKED,
        severity=Severity.CRITICAL,
        description="blocked",
    )
    await audit_logger.drain()
    assert len(audit_repository.security_events) == 1
