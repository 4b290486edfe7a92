"""
Per-identity request admission control.

Both limiters are soft guards. The in-memory map is process-local: counts are
lost on restart or redeploy and are not shared between replicas. The Redis
variant shares counters between processes but still only approximates a
sliding window (fixed window from the first hit).
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Protocol

import structlog
from fastapi import Depends, HTTPException

from app.core.auth import AuthenticatedUser, get_authenticated_user
from app.core.config import get_settings

log = structlog.get_logger()


class RateLimiter(Protocol):
    async def hit(self, key: str, limit: int) -> bool:
        """Record one request for ``key``; False when it exceeds ``limit``."""
        ...


@dataclass
class _Window:
    count: int
    reset_at: float


class InMemoryRateLimiter:
    """Fixed window per key, reset on the first request after expiry."""

    def __init__(self, window_seconds: float = 60, clock: Callable[[], float] = time.monotonic):
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    async def hit(self, key: str, limit: int) -> bool:
        now = self._clock()
        record = self._windows.get(key)

        if record is None or now > record.reset_at:
            self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
            return True

        if record.count >= limit:
            return False

        record.count += 1
        return True

    def count(self, key: str) -> int:
        record = self._windows.get(key)
        return record.count if record else 0

    def reset(self) -> None:
        self._windows.clear()


class RedisRateLimiter:
    """INCR + PEXPIRE on the first hit of each window."""

    def __init__(self, redis, window_seconds: float = 60, prefix: str = "ratelimit"):
        self._redis = redis
        self.window_seconds = window_seconds
        self._prefix = prefix

    async def hit(self, key: str, limit: int) -> bool:
        redis_key = f"{self._prefix}:{key}"
        count = await self._redis.incr(redis_key)
        if count == 1:
            await self._redis.pexpire(redis_key, int(self.window_seconds * 1000))
        return count <= limit


_limiter: RateLimiter | None = None


async def get_rate_limiter() -> RateLimiter:
    """FastAPI dependency returning the configured process-wide limiter."""
    global _limiter
    if _limiter is None:
        settings = get_settings()
        if settings.rate_limit_backend == "redis":
            from app.core.redis import get_redis

            _limiter = RedisRateLimiter(await get_redis(), settings.rate_limit_window_seconds)
        else:
            _limiter = InMemoryRateLimiter(settings.rate_limit_window_seconds)
    return _limiter


def rate_limited(action: str, limit: int):
    """Dependency factory: 429 once ``action:<user id>`` exceeds ``limit`` per window."""

    async def _dependency(
        auth: AuthenticatedUser = Depends(get_authenticated_user),
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> AuthenticatedUser:
        if not await limiter.hit(f"{action}:{auth.user_id}", limit):
            log.warning("rate_limit.exceeded", action=action, user_id=str(auth.user_id))
            raise HTTPException(status_code=429, detail="Too many requests. Please try again later.")
        return auth

    return _dependency
