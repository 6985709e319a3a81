# delivery_guard/infrastructure/database/models.py

import uuid

from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.sql import func

from delivery_guard.infrastructure.database.session import Base


class DeliveryRecord(Base):
    """Delivery row. Only the fields the transition validator inspects."""

    __tablename__ = "deliveries"

    id = Column(String, primary_key=True)
    state = Column(String, nullable=False, index=True)
    customer_id = Column(String, nullable=False, index=True)
    courier_id = Column(String, nullable=True, index=True)
    business_id = Column(String, nullable=True, index=True)
    total_fare = Column(Numeric(12, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class PaymentRecord(Base):
    __tablename__ = "payments"

    id = Column(String, primary_key=True)
    delivery_id = Column(String, nullable=False, index=True)
    customer_id = Column(String, nullable=False, index=True)
    courier_id = Column(String, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    method = Column(String, nullable=True)
    state = Column(String, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class IdempotentOperationRecord(Base):
    """Stored response per (actor, idempotency key). The unique constraint is the cross-process serialization point."""

    __tablename__ = "idempotent_operations"
    __table_args__ = (
        UniqueConstraint("actor_id", "idempotency_key", name="uq_idempotent_actor_key"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    actor_id = Column(String, nullable=False)
    idempotency_key = Column(String(255), nullable=False)
    status_code = Column(Integer, nullable=False)
    response_body = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)


class SecurityEventRecord(Base):
    __tablename__ = "security_events"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    actor_id = Column(String, nullable=True, index=True)
    event_type = Column(String, nullable=False, index=True)
    severity = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    correlation_id = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(Text, nullable=True)
    metadata_ = Column("metadata", JSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class AuditLogRecord(Base):
    __tablename__ = "audit_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    actor = Column(String, nullable=False, index=True)
    action = Column(String, nullable=False)
    resource_type = Column(String, nullable=False)
    resource_id = Column(String, nullable=False, index=True)
    old_values = Column(JSONB, nullable=True)
    new_values = Column(JSONB, nullable=True)
    reason = Column(Text, nullable=True)
    correlation_id = Column(String, nullable=True)
    metadata_ = Column("metadata", JSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
