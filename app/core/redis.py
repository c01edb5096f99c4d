"""
Redis client factory with connection pooling.
The pool is owned by a RedisPool object created at startup, not a module global.
"""

import redis.asyncio as aioredis
import structlog

from app.core.config import Settings

logger = structlog.get_logger(__name__)


class RedisPool:
    """Lazily-built connection pool shared by the rate limiter and health checks."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._pool: aioredis.ConnectionPool | None = None

    def _get_pool(self) -> aioredis.ConnectionPool:
        if self._pool is None:
            self._pool = aioredis.ConnectionPool.from_url(
                str(self.settings.REDIS_DSN),
                max_connections=self.settings.REDIS_MAX_CONNECTIONS,
                socket_timeout=self.settings.REDIS_SOCKET_TIMEOUT,
                socket_connect_timeout=5.0,
                retry_on_timeout=True,
                health_check_interval=30,
                decode_responses=True,
            )
        return self._pool

    def client(self) -> aioredis.Redis:
        """Get a Redis client bound to the shared pool."""
        return aioredis.Redis(connection_pool=self._get_pool())

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None
            logger.info("Redis pool closed")
