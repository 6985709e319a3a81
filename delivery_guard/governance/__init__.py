"""Governance: immutable audit records and security events. No FastAPI."""

from delivery_guard.governance.audit_logger import AuditLogger
from delivery_guard.governance.audit_models import (
    AuditRecord,
    SecurityEvent,
    SecurityEventType,
    Severity,
)
from delivery_guard.governance.audit_repository import AlertPublisher, AuditRepository

__all__ = [
    "AlertPublisher",
    "AuditLogger",
    "AuditRecord",
    "AuditRepository",
    "SecurityEvent",
    "SecurityEventType",
    "Severity",
]
