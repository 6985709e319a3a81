"""Per-actor sliding-window rate limiter for money-moving endpoints. Metrics-integrated."""

import asyncio
import time
from typing import Callable, Protocol

from delivery_guard.observability.metrics import MetricsCollector


class RateLimitBackend(Protocol):
    """Backend for rate limit state. Injected."""

    async def incr_window(self, key: str, window_seconds: int) -> int: ...
    async def get_current_count(self, key: str, window_seconds: int) -> int: ...


class InMemoryRateLimitBackend:
    """In-memory sliding window: key -> list of timestamps. Single process."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._windows: dict[str, list[float]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def incr_window(self, key: str, window_seconds: int) -> int:
        async with self._lock:
            now = self._clock()
            cutoff = now - window_seconds
            hits = [t for t in self._windows.get(key, []) if t > cutoff]
            hits.append(now)
            self._windows[key] = hits
            return len(hits)

    async def get_current_count(self, key: str, window_seconds: int) -> int:
        async with self._lock:
            cutoff = self._clock() - window_seconds
            return len([t for t in self._windows.get(key, []) if t > cutoff])


class ActorRateLimiter:
    """
    Per-actor, per-scope rate limiter. Every attempt counts against the window,
    rejected ones included.
    """

    def __init__(
        self,
        backend: RateLimitBackend,
        requests_per_window: int = 2,
        window_seconds: int = 60,
        scope: str = "payment",
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._backend = backend
        self._limit = requests_per_window
        self._window = window_seconds
        self._scope = scope
        self._metrics = metrics
        self._key_prefix = f"rate:{scope}:"

    @property
    def window_seconds(self) -> int:
        return self._window

    def _key(self, identifier: str) -> str:
        return f"{self._key_prefix}{identifier}"

    async def allow_request(self, identifier: str) -> bool:
        """True if identifier is still under the limit for this scope."""
        count = await self._backend.incr_window(self._key(identifier), self._window)
        allowed = count <= self._limit
        if self._metrics is not None and not allowed:
            self._metrics.increment("rate_limit_exceeded", label="scope", label_value=self._scope)
        return allowed
