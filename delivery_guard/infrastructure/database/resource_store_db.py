"""DB-backed resource store. Transitions commit with UPDATE ... WHERE state = expected."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Type, Union

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from delivery_guard.application.resource_store import CommitResult
from delivery_guard.domain.models.resource import (
    Delivery,
    DeliveryState,
    Payment,
    PaymentState,
    Resource,
    ResourceKind,
)
from delivery_guard.infrastructure.database.models import DeliveryRecord, PaymentRecord

_MODELS: Dict[ResourceKind, Type[Union[DeliveryRecord, PaymentRecord]]] = {
    ResourceKind.DELIVERY: DeliveryRecord,
    ResourceKind.PAYMENT: PaymentRecord,
}


def _aware(value: Optional[datetime]) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_delivery(orm: DeliveryRecord) -> Delivery:
    return Delivery(
        resource_id=orm.id,
        state=DeliveryState(orm.state),
        customer_id=orm.customer_id,
        courier_id=orm.courier_id,
        business_id=orm.business_id,
        total_fare=orm.total_fare,
        updated_at=_aware(orm.updated_at),
    )


def _to_payment(orm: PaymentRecord) -> Payment:
    return Payment(
        resource_id=orm.id,
        state=PaymentState(orm.state),
        delivery_id=orm.delivery_id,
        customer_id=orm.customer_id,
        amount=orm.amount,
        courier_id=orm.courier_id,
        method=orm.method,
        created_at=_aware(orm.created_at),
        updated_at=_aware(orm.updated_at),
    )


def _column_values(new_fields: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in new_fields.items()}


class DbResourceStore:
    """Implements ResourceStore over PostgreSQL. One session per call."""

    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def get(self, kind: ResourceKind, resource_id: str) -> Optional[Resource]:
        model = _MODELS[kind]
        async with self._sessions() as session:
            result = await session.execute(select(model).where(model.id == resource_id))
            orm = result.scalar_one_or_none()
        if orm is None:
            return None
        if kind is ResourceKind.DELIVERY:
            return _to_delivery(orm)
        return _to_payment(orm)

    async def compare_and_set(
        self,
        kind: ResourceKind,
        resource_id: str,
        expected_state: Enum,
        new_fields: Mapping[str, Any],
    ) -> CommitResult:
        model = _MODELS[kind]
        stmt = (
            update(model)
            .where(model.id == resource_id, model.state == expected_state.value)
            .values(**_column_values(new_fields))
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            await session.commit()
        # Exactly one row matched the expected state, or someone else moved it first.
        return CommitResult.COMMITTED if result.rowcount == 1 else CommitResult.CONFLICT

    async def insert_payment(self, payment: Payment) -> Payment:
        orm = PaymentRecord(
            id=payment.resource_id,
            delivery_id=payment.delivery_id,
            customer_id=payment.customer_id,
            courier_id=payment.courier_id,
            amount=payment.amount,
            method=payment.method,
            state=payment.state.value,
            created_at=payment.created_at,
            updated_at=payment.updated_at,
        )
        async with self._sessions() as session:
            session.add(orm)
            await session.flush()
            await session.commit()
            await session.refresh(orm)
        return _to_payment(orm)

    async def list_payments_for_delivery(self, delivery_id: str) -> List[Payment]:
        async with self._sessions() as session:
            result = await session.execute(
                select(PaymentRecord).where(PaymentRecord.delivery_id == delivery_id)
            )
            rows = result.scalars().all()
        return [_to_payment(orm) for orm in rows]
