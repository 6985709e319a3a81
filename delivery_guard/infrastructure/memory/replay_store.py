"""In-memory replay window store with per-key TTL."""

import asyncio
import time
from typing import Callable, Dict


class InMemoryReplayWindowStore:
    """Implements ReplayWindowStore for a single process. Expired keys are purged on write."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._expiry: Dict[str, float] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def add_if_absent(self, key: str, ttl_seconds: int) -> bool:
        async with self._lock:
            now = self._clock()
            self._purge(now)
            if key in self._expiry:
                return False
            self._expiry[key] = now + ttl_seconds
            return True

    def _purge(self, now: float) -> None:
        for key in [k for k, expires in self._expiry.items() if expires <= now]:
            del self._expiry[key]

    def __len__(self) -> int:
        return len(self._expiry)
