"""
Sliding-window rate limiting keyed by client address.

Two interchangeable stores:
- RedisRateLimiter: sorted set per key, shared across API processes
- InMemoryRateLimiter: per-process deque, used by single-node deployments and tests

Both are explicit objects handed to the API layer; nothing here is module state.
"""

from __future__ import annotations

import math
import time
import uuid
from abc import ABC, abstractmethod
from collections import deque
from typing import Callable

import redis.asyncio as aioredis
import structlog
from pydantic import BaseModel

logger = structlog.get_logger(__name__)


class RateLimitDecision(BaseModel):
    allowed: bool
    retry_after_seconds: int = 0


class RateLimiter(ABC):
    """Admission check performed before a new analysis is accepted."""

    def __init__(self, max_requests: int, window_seconds: float):
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    @abstractmethod
    async def check(self, client_key: str) -> RateLimitDecision:
        ...

    def _retry_after(self, oldest: float, now: float) -> int:
        return max(1, math.ceil(oldest + self.window_seconds - now))


class InMemoryRateLimiter(RateLimiter):

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(max_requests, window_seconds)
        self._clock = clock
        self._windows: dict[str, deque[float]] = {}

    async def check(self, client_key: str) -> RateLimitDecision:
        now = self._clock()
        cutoff = now - self.window_seconds

        window = self._windows.setdefault(client_key, deque())
        while window and window[0] <= cutoff:
            window.popleft()

        if len(window) >= self.max_requests:
            return RateLimitDecision(allowed=False, retry_after_seconds=self._retry_after(window[0], now))

        window.append(now)
        return RateLimitDecision(allowed=True)

    def prune(self) -> int:
        """Drop keys whose window is empty. Returns the number of keys removed."""
        cutoff = self._clock() - self.window_seconds
        stale = [key for key, window in self._windows.items() if not window or window[-1] <= cutoff]
        for key in stale:
            del self._windows[key]
        return len(stale)


class RedisRateLimiter(RateLimiter):

    def __init__(
        self,
        redis: aioredis.Redis,
        max_requests: int,
        window_seconds: float,
        namespace: str = "geo:ratelimit",
    ):
        super().__init__(max_requests, window_seconds)
        self.redis = redis
        self.namespace = namespace

    def _key(self, client_key: str) -> str:
        return f"{self.namespace}:{client_key}"

    async def check(self, client_key: str) -> RateLimitDecision:
        key = self._key(client_key)
        now = time.time()
        cutoff = now - self.window_seconds

        pipe = self.redis.pipeline()
        pipe.zremrangebyscore(key, 0, cutoff)
        pipe.zcard(key)
        pipe.zrange(key, 0, 0, withscores=True)
        _, count, oldest = await pipe.execute()

        if count >= self.max_requests:
            oldest_ts = oldest[0][1] if oldest else now
            return RateLimitDecision(allowed=False, retry_after_seconds=self._retry_after(oldest_ts, now))

        pipe = self.redis.pipeline()
        pipe.zadd(key, {f"{now}:{uuid.uuid4().hex}": now})
        pipe.expire(key, math.ceil(self.window_seconds))
        await pipe.execute()
        return RateLimitDecision(allowed=True)
