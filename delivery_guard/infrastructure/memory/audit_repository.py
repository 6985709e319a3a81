"""In-memory audit repository. Append-only lists."""

from typing import List

from delivery_guard.governance.audit_models import AuditRecord, SecurityEvent


class InMemoryAuditRepository:
    """Implements AuditRepository. Used for local runs and tests."""

    def __init__(self) -> None:
        self.records: List[AuditRecord] = []
        self.security_events: List[SecurityEvent] = []

    async def save(self, record: AuditRecord) -> None:
        self.records.append(record)

    async def save_security_event(self, event: SecurityEvent) -> None:
        self.security_events.append(event)
