"""Redis-backed replay window store. SET NX EX gives an atomic first-sight check across processes."""

from delivery_guard.infrastructure.cache.redis_client import RedisClient

REPLAY_KEY_PREFIX = "replay:"


class RedisReplayWindowStore:
    """Implements ReplayWindowStore."""

    def __init__(self, redis_client: RedisClient) -> None:
        self._redis = redis_client

    async def add_if_absent(self, key: str, ttl_seconds: int) -> bool:
        return await self._redis.set_nx_ex(f"{REPLAY_KEY_PREFIX}{key}", "1", ttl_seconds)
