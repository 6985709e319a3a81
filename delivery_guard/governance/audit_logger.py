"""Fire-and-forget audit sink. Writes immutable records; never blocks or fails the caller's outcome. No FastAPI."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from delivery_guard.governance.audit_models import (
    AuditRecord,
    SecurityEvent,
    SecurityEventType,
    Severity,
)
from delivery_guard.governance.audit_repository import AlertPublisher, AuditRepository

_SEVERITY_LOG_LEVELS = {
    Severity.CRITICAL: logging.ERROR,
    Severity.HIGH: logging.WARNING,
    Severity.MEDIUM: logging.INFO,
    Severity.LOW: logging.INFO,
}


class AuditLogger:
    """
    Appends audit records and security events via repository.
    Persistence runs as a background task: a store outage is logged and
    swallowed so it never changes the primary outcome. Critical security
    events are also forwarded to the alert publisher when one is configured.
    """

    def __init__(
        self,
        repository: AuditRepository,
        alert_publisher: Optional[AlertPublisher] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._repository = repository
        self._alerts = alert_publisher
        self._logger = logger or logging.getLogger(__name__)
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def log_action(
        self,
        *,
        actor: str,
        action: str,
        resource_type: str,
        resource_id: str,
        correlation_id: Optional[str],
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditRecord:
        """Append an immutable audit record. Timestamp is UTC."""
        record = AuditRecord(
            actor=actor,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            old_values=old_values,
            new_values=new_values,
            reason=reason,
            correlation_id=correlation_id,
            metadata=metadata,
            timestamp_utc=datetime.now(timezone.utc),
        )
        self._logger.info("audit_record", extra={"audit": record.to_dict()})
        self._dispatch(
            lambda: self._repository.save(record),
            "audit_record_persist_failed",
            {"action": action, "resource_id": resource_id},
        )
        return record

    async def log_security_event(
        self,
        *,
        event_type: SecurityEventType,
        severity: Severity,
        description: str,
        actor_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SecurityEvent:
        """Append a security event; log at a level derived from severity."""
        event = SecurityEvent(
            actor_id=actor_id,
            event_type=event_type,
            severity=severity,
            description=description,
            correlation_id=correlation_id,
            ip_address=ip_address,
            user_agent=user_agent,
            metadata=metadata,
            timestamp_utc=datetime.now(timezone.utc),
        )
        self._logger.log(
            _SEVERITY_LOG_LEVELS[severity],
            "security_event",
            extra={"security_event": event.to_dict()},
        )
        self._dispatch(
            lambda: self._repository.save_security_event(event),
            "security_event_persist_failed",
            {"event_type": event_type.value},
        )
        if severity is Severity.CRITICAL and self._alerts is not None:
            alerts = self._alerts
            self._dispatch(
                lambda: alerts.publish_alert(event.to_dict()),
                "security_alert_publish_failed",
                {"event_type": event_type.value},
            )
        return event

    async def drain(self) -> None:
        """Wait for in-flight writes (shutdown, tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _dispatch(
        self,
        write: Callable[[], Awaitable[None]],
        failure_event: str,
        context: Dict[str, Any],
    ) -> None:
        task = asyncio.get_running_loop().create_task(self._guarded(write, failure_event, context))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _guarded(
        self,
        write: Callable[[], Awaitable[None]],
        failure_event: str,
        context: Dict[str, Any],
    ) -> None:
        try:
            await write()
        except Exception as e:
            # Transient store unavailability must not block the primary outcome.
            self._logger.warning(failure_event, extra={**context, "error": str(e)})
