"""
Redis client shared by the token revocation list and cached read models.

Values are stored as JSON. Every operation degrades to a miss (or ``False``)
when Redis is unreachable so callers never fail because of the cache.
"""
import json
from typing import Optional, Any
import redis.asyncio as redis
from redis.exceptions import RedisError
from eventshare.core.config import settings
from eventshare.core.logging import logger


class RedisCache:
    """Lazily connected asyncio Redis client with a bounded pool."""

    def __init__(self, url: Optional[str] = None, max_connections: int = 20):
        self._url = url or settings.REDIS_URL
        self._max_connections = max_connections
        self._client: Optional[redis.Redis] = None

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            pool = redis.ConnectionPool.from_url(
                self._url,
                decode_responses=True,
                max_connections=self._max_connections,
            )
            self._client = redis.Redis(connection_pool=pool)
            logger.info("Redis connection pool created")
        return self._client

    async def get(self, key: str) -> Optional[Any]:
        """
        Get a JSON value by key.

        Returns:
            Decoded value, or None when missing or Redis is unavailable
        """
        try:
            value = await self._get_client().get(key)
        except RedisError as e:
            logger.error(f"Redis GET error for key {key}: {e}")
            return None
        if value is None:
            return None
        try:
            return json.loads(value)
        except ValueError:
            logger.warning(f"Discarding undecodable cache entry {key}")
            return None

    async def set(self, key: str, value: Any, expire: int = 300) -> bool:
        """
        Store a JSON-serialisable value with a TTL in seconds.
        """
        try:
            await self._get_client().setex(key, expire, json.dumps(value, default=str))
            return True
        except RedisError as e:
            logger.error(f"Redis SET error for key {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            await self._get_client().delete(key)
            return True
        except RedisError as e:
            logger.error(f"Redis DELETE error for key {key}: {e}")
            return False

    async def delete_pattern(self, pattern: str) -> int:
        """
        Delete every key matching a glob pattern (e.g. ``users:stats:*``).

        Returns:
            Number of keys deleted
        """
        try:
            client = self._get_client()
            keys = [key async for key in client.scan_iter(match=pattern, count=100)]
            if keys:
                return await client.delete(*keys)
            return 0
        except RedisError as e:
            logger.error(f"Redis DELETE_PATTERN error for pattern {pattern}: {e}")
            return 0

    async def exists(self, key: str) -> bool:
        try:
            return await self._get_client().exists(key) > 0
        except RedisError as e:
            logger.error(f"Redis EXISTS error for key {key}: {e}")
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Redis connection pool closed")


cache = RedisCache()
