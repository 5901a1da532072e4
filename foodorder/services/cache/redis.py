"""
Redis Cache Service Implementation

Production implementation on redis-py's asyncio client.
Used when ENV_MODE=production or ENV_MODE=staging.
"""

import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from foodorder.core.config import get_settings
from foodorder.services.cache.base import BaseCacheService

logger = logging.getLogger(__name__)


class RedisCacheService(BaseCacheService):
    """
    Redis-backed cache.

    Connection errors propagate as RedisError; callers that treat the
    cache as best-effort catch it themselves.
    """

    def __init__(self, url: Optional[str] = None):
        settings = get_settings()
        self._url = url or settings.redis_url
        self._client = aioredis.from_url(
            self._url,
            decode_responses=True,
            socket_timeout=2,
        )
        logger.info("RedisCacheService initialized")

    @property
    def provider_name(self) -> str:
        return "redis"

    async def get(self, key: str) -> Optional[str]:
        return await self._client.get(key)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        await self._client.set(key, value, ex=ttl)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self._client.delete(*keys)

    async def pop(self, key: str) -> Optional[str]:
        return await self._client.getdel(key)

    async def delete_pattern(self, pattern: str) -> int:
        keys = [key async for key in self._client.scan_iter(match=pattern, count=100)]
        return await self.delete(*keys)

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.error(f"Redis: Health check failed - {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()
