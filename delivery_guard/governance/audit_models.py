"""Immutable audit and security event records. Domain-level immutability."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SecurityEventType(str, Enum):
    UNAUTHORIZED_ACCESS = "UNAUTHORIZED_ACCESS"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    UNAUTHORIZED_STATE_TRANSITION = "UNAUTHORIZED_STATE_TRANSITION"
    INVALID_PAYMENT_TRANSITION = "INVALID_PAYMENT_TRANSITION"
    UNAUTHORIZED_PAYMENT_TRANSITION = "UNAUTHORIZED_PAYMENT_TRANSITION"
    STATE_TRANSITION_CONFLICT = "STATE_TRANSITION_CONFLICT"
    PAYMENT_AMOUNT_MISMATCH = "PAYMENT_AMOUNT_MISMATCH"
    UNAUTHORIZED_PAYMENT = "UNAUTHORIZED_PAYMENT"
    DUPLICATE_PAYMENT_ATTEMPT = "DUPLICATE_PAYMENT_ATTEMPT"
    REPLAY_ATTACK_ATTEMPT = "REPLAY_ATTACK_ATTEMPT"
    IDEMPOTENCY_KEY_MISSING = "IDEMPOTENCY_KEY_MISSING"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SUSPICIOUS_BEHAVIOR = "SUSPICIOUS_BEHAVIOR"
    CRITICAL_RISK_BLOCKED = "CRITICAL_RISK_BLOCKED"
    HONEYPOT_ACCESS = "HONEYPOT_ACCESS"


@dataclass(frozen=True)
class SecurityEvent:
    """Append-only security fact: actor, kind, severity, when (UTC), free-form metadata."""

    actor_id: Optional[str]
    event_type: SecurityEventType
    severity: Severity
    description: str
    correlation_id: Optional[str]
    ip_address: Optional[str]
    user_agent: Optional[str]
    metadata: Optional[Dict[str, Any]]
    timestamp_utc: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Structured representation for JSON logging."""
        return {
            "actor_id": self.actor_id,
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "description": self.description,
            "correlation_id": self.correlation_id,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "metadata": self.metadata,
            "timestamp_utc": self.timestamp_utc.isoformat(),
        }


@dataclass(frozen=True)
class AuditRecord:
    """
    Immutable audit record for a committed change: who, what, when (UTC),
    old/new values, correlation_id.
    """

    actor: str
    action: str
    resource_type: str
    resource_id: str
    old_values: Optional[Dict[str, Any]]
    new_values: Optional[Dict[str, Any]]
    reason: Optional[str]
    correlation_id: Optional[str]
    metadata: Optional[Dict[str, Any]]
    timestamp_utc: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actor": self.actor,
            "action": self.action,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "old_values": self.old_values,
            "new_values": self.new_values,
            "reason": self.reason,
            "correlation_id": self.correlation_id,
            "metadata": self.metadata,
            "timestamp_utc": self.timestamp_utc.isoformat(),
        }
