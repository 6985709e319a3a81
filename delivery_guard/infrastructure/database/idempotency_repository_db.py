"""DB-backed idempotency repository. First writer wins on the (actor_id, idempotency_key) constraint."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from delivery_guard.infrastructure.database.models import IdempotentOperationRecord
from delivery_guard.security.idempotency import StoredResponse


def _ts(value: float) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


class DbIdempotencyRepository:
    """Implements IdempotencyRepository over PostgreSQL."""

    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def get(self, actor_id: str, key: str) -> Optional[StoredResponse]:
        stmt = select(IdempotentOperationRecord).where(
            IdempotentOperationRecord.actor_id == actor_id,
            IdempotentOperationRecord.idempotency_key == key,
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            orm = result.scalar_one_or_none()
        if orm is None:
            return None
        return StoredResponse(
            status_code=orm.status_code,
            body=orm.response_body,
            created_at=orm.created_at.timestamp(),
            expires_at=orm.expires_at.timestamp(),
        )

    async def put(self, actor_id: str, key: str, response: StoredResponse) -> bool:
        payload = {
            "actor_id": actor_id,
            "idempotency_key": key,
            "status_code": response.status_code,
            "response_body": response.body,
            "created_at": _ts(response.created_at),
            "expires_at": _ts(response.expires_at),
        }
        stmt = insert(IdempotentOperationRecord).values(**payload)
        # Replace only an expired entry; a live one belongs to the first writer.
        stmt = stmt.on_conflict_do_update(
            index_elements=["actor_id", "idempotency_key"],
            set_={k: v for k, v in payload.items() if k not in ("actor_id", "idempotency_key")},
            where=IdempotentOperationRecord.expires_at <= _ts(response.created_at),
        ).returning(IdempotentOperationRecord.id)
        async with self._sessions() as session:
            result = await session.execute(stmt)
            row = result.first()
            await session.commit()
        return row is not None
