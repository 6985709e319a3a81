"""Scalability: per-actor rate limiting. No FastAPI."""

from delivery_guard.scalability.rate_limiter import (
    ActorRateLimiter,
    InMemoryRateLimitBackend,
    RateLimitBackend,
)

__all__ = [
    "ActorRateLimiter",
    "InMemoryRateLimitBackend",
    "RateLimitBackend",
]
