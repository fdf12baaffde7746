"""Per-user fixed-window rate limiting for paid AI operations."""

from __future__ import annotations

import abc
import asyncio
import logging
import time
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class RateLimitStore(abc.ABC):
    """Holds window state. Implementations must make ``hit`` atomic per key."""

    @abc.abstractmethod
    async def hit(self, key: str, limit: int, window_seconds: float, now: float) -> bool:
        """Record a request for ``key`` and return whether it is admitted."""

    async def reset(self) -> None:
        return None

    async def close(self) -> None:
        return None


class InMemoryRateLimitStore(RateLimitStore):
    """Process-local windows. State is lost on restart."""

    def __init__(self, sweep_threshold: int = 1024) -> None:
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._lock = asyncio.Lock()
        self._sweep_threshold = max(int(sweep_threshold), 1)

    def _sweep(self, now: float) -> None:
        expired = [key for key, (_, reset_at) in self._windows.items() if now > reset_at]
        for key in expired:
            del self._windows[key]

    async def hit(self, key: str, limit: int, window_seconds: float, now: float) -> bool:
        async with self._lock:
            if len(self._windows) >= self._sweep_threshold:
                self._sweep(now)
            window = self._windows.get(key)
            if window is None or now > window[1]:
                self._windows[key] = (1, now + window_seconds)
                return True
            count, reset_at = window
            if count >= limit:
                return False
            self._windows[key] = (count + 1, reset_at)
            return True

    def window(self, key: str) -> Optional[Tuple[int, float]]:
        return self._windows.get(key)

    def __len__(self) -> int:
        return len(self._windows)

    async def reset(self) -> None:
        async with self._lock:
            self._windows.clear()


class RedisRateLimitStore(RateLimitStore):
    """Windows shared across processes via INCR + EXPIRE.

    When Redis is unreachable, requests are counted in a process-local
    fallback store until it answers again.
    """

    def __init__(self, client, fallback: Optional[InMemoryRateLimitStore] = None) -> None:
        self._client = client
        self._fallback = fallback if fallback is not None else InMemoryRateLimitStore()

    @classmethod
    def from_url(cls, url: str) -> "RedisRateLimitStore":
        return cls(redis.from_url(url, decode_responses=True))

    async def hit(self, key: str, limit: int, window_seconds: float, now: float) -> bool:
        try:
            current = await self._client.incr(key)
            if current == 1:
                await self._client.expire(key, max(int(window_seconds), 1))
        except redis.RedisError as exc:
            logger.warning("Redis rate limit store unavailable, counting locally: %s", exc)
            return await self._fallback.hit(key, limit, window_seconds, now)
        return int(current) <= limit

    async def reset(self) -> None:
        await self._fallback.reset()

    async def close(self) -> None:
        await self._client.aclose()


class RateLimiter:
    """Admits at most ``limit`` requests per user in each window."""

    def __init__(
        self,
        store: RateLimitStore,
        limit: int = 5,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.time,
        prefix: str = "velora:rate",
    ) -> None:
        if limit <= 0 or window_seconds <= 0:
            raise ValueError("limit and window_seconds must be positive")
        self.store = store
        self.limit = int(limit)
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._prefix = prefix

    def key_for(self, user_id: str, scope: str = "paid_ai") -> str:
        return f"{self._prefix}:{scope}:{user_id}"

    async def admit(self, user_id: str, scope: str = "paid_ai") -> bool:
        allowed = await self.store.hit(
            self.key_for(user_id, scope),
            self.limit,
            self.window_seconds,
            self._clock(),
        )
        if not allowed:
            logger.info("Rate limit exceeded for user %s on %s", user_id, scope)
        return allowed


def build_rate_limit_store(backend: str, redis_url: str) -> RateLimitStore:
    if backend == "redis":
        return RedisRateLimitStore.from_url(redis_url)
    return InMemoryRateLimitStore()
