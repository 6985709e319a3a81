"""Audit repository protocol. Governance layer depends on this; infrastructure implements it."""

from typing import Any, Dict, Protocol

from delivery_guard.governance.audit_models import AuditRecord, SecurityEvent


class AuditRepository(Protocol):
    """Protocol for persisting immutable audit records and security events. Append-only."""

    async def save(self, record: AuditRecord) -> None:
        """Persist an immutable audit record. Must not allow mutation."""
        ...

    async def save_security_event(self, event: SecurityEvent) -> None:
        """Persist an immutable security event."""
        ...


class AlertPublisher(Protocol):
    """Outbound channel for critical security alerts (e.g. a message broker)."""

    async def publish_alert(self, alert: Dict[str, Any]) -> None:
        ...
