"""In-memory idempotency repository keyed by (actor, key)."""

import asyncio
import time
from typing import Callable, Dict, Optional, Tuple

from delivery_guard.security.idempotency import StoredResponse


class InMemoryIdempotencyRepository:
    """
    Implements IdempotencyRepository. First live writer wins; expired entries
    may be replaced and are purged on write.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._entries: Dict[Tuple[str, str], StoredResponse] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def get(self, actor_id: str, key: str) -> Optional[StoredResponse]:
        return self._entries.get((actor_id, key))

    async def put(self, actor_id: str, key: str, response: StoredResponse) -> bool:
        async with self._lock:
            self._purge(self._clock())
            if (actor_id, key) in self._entries:
                return False
            self._entries[(actor_id, key)] = response
            return True

    def _purge(self, now: float) -> None:
        for ident in [k for k, stored in self._entries.items() if stored.is_expired(now)]:
            del self._entries[ident]

    def __len__(self) -> int:
        return len(self._entries)
