"""
Idempotency cache for money-moving operations.

Keyed by (actor, Idempotency-Key). A stored response is returned verbatim for
any repeat within the TTL; expired entries behave as absent. Concurrent first
sightings of the same key are serialized per key in-process; across processes
the repository's insert is first-writer-wins.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Tuple

from delivery_guard.security.exceptions import HeaderRequiredError, IdempotencyKeyRequiredError

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "Idempotency-Key"
DEFAULT_TTL_SECONDS = 86400
MAX_KEY_LENGTH = 255


@dataclass(frozen=True)
class StoredResponse:
    """The exact response produced by the first successful execution."""

    status_code: int
    body: str
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class IdempotencyRepository(Protocol):
    """Durable (actor, key) -> StoredResponse store. Injected."""

    async def get(self, actor_id: str, key: str) -> Optional[StoredResponse]: ...

    async def put(self, actor_id: str, key: str, response: StoredResponse) -> bool:
        """Insert unless a live entry exists. Returns False if another writer won."""
        ...


class IdempotencyCache:
    """Look up, store and serialize idempotent operations."""

    def __init__(
        self,
        repository: IdempotencyRepository,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._repository = repository
        self._ttl = ttl_seconds
        self._clock = clock
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}
        self._waiters: Dict[Tuple[str, str], int] = {}

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def require_key(self, raw: Optional[str]) -> str:
        """Return the stripped key. Missing or blank raises IdempotencyKeyRequiredError."""
        if raw is None or not raw.strip():
            raise IdempotencyKeyRequiredError(IDEMPOTENCY_HEADER)
        key = raw.strip()
        if len(key) > MAX_KEY_LENGTH:
            raise HeaderRequiredError(
                IDEMPOTENCY_HEADER, f"{IDEMPOTENCY_HEADER} must be at most {MAX_KEY_LENGTH} characters"
            )
        return key

    async def lookup(self, actor_id: str, key: str) -> Optional[StoredResponse]:
        stored = await self._repository.get(actor_id, key)
        if stored is None:
            return None
        if stored.is_expired(self._clock()):
            return None
        logger.info("idempotent_replay", extra={"idempotency_key": key})
        return stored

    async def store(self, actor_id: str, key: str, status_code: int, body: str) -> StoredResponse:
        """
        Persist the first successful outcome. If another writer stored first,
        the earlier entry is kept and returned.
        """
        now = self._clock()
        response = StoredResponse(
            status_code=status_code,
            body=body,
            created_at=now,
            expires_at=now + self._ttl,
        )
        if await self._repository.put(actor_id, key, response):
            return response
        existing = await self._repository.get(actor_id, key)
        logger.info("idempotent_store_lost_race", extra={"idempotency_key": key})
        return existing if existing is not None else response

    def lock_for(self, actor_id: str, key: str) -> "_KeyLock":
        """Async context manager serializing work on one (actor, key)."""
        return _KeyLock(self, (actor_id, key))

    def _acquire_lock(self, ident: Tuple[str, str]) -> asyncio.Lock:
        lock = self._locks.get(ident)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[ident] = lock
        self._waiters[ident] = self._waiters.get(ident, 0) + 1
        return lock

    def _release_lock(self, ident: Tuple[str, str]) -> None:
        remaining = self._waiters.get(ident, 1) - 1
        if remaining <= 0:
            self._waiters.pop(ident, None)
            self._locks.pop(ident, None)
        else:
            self._waiters[ident] = remaining


class _KeyLock:
    def __init__(self, cache: IdempotencyCache, ident: Tuple[str, str]) -> None:
        self._cache = cache
        self._ident = ident
        self._lock: Optional[asyncio.Lock] = None

    async def __aenter__(self) -> None:
        self._lock = self._cache._acquire_lock(self._ident)
        await self._lock.acquire()

    async def __aexit__(self, *exc: object) -> None:
        if self._lock is None:
            return
        lock, self._lock = self._lock, None
        lock.release()
        self._cache._release_lock(self._ident)
