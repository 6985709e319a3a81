"""DB-backed audit repository. Append-only inserts into audit_logs and security_events."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from delivery_guard.governance.audit_models import AuditRecord, SecurityEvent
from delivery_guard.infrastructure.database.models import AuditLogRecord, SecurityEventRecord


class DbAuditRepository:
    """Implements AuditRepository over PostgreSQL."""

    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def save(self, record: AuditRecord) -> None:
        orm = AuditLogRecord(
            actor=record.actor,
            action=record.action,
            resource_type=record.resource_type,
            resource_id=record.resource_id,
            old_values=record.old_values,
            new_values=record.new_values,
            reason=record.reason,
            correlation_id=record.correlation_id,
            metadata_=record.metadata,
            created_at=record.timestamp_utc,
        )
        async with self._sessions() as session:
            session.add(orm)
            await session.commit()

    async def save_security_event(self, event: SecurityEvent) -> None:
        orm = SecurityEventRecord(
            actor_id=event.actor_id,
            event_type=event.event_type.value,
            severity=event.severity.value,
            description=event.description,
            correlation_id=event.correlation_id,
            ip_address=event.ip_address,
            user_agent=event.user_agent,
            metadata_=event.metadata,
            created_at=event.timestamp_utc,
        )
        async with self._sessions() as session:
            session.add(orm)
            await session.commit()
