"""
Cache Service Factory

Returns MemoryCacheService or RedisCacheService based on ENV_MODE.

Usage:
    from foodorder.services.cache import get_cache_service

    cache = get_cache_service()
    await cache.set("key", "value", ttl=300)
"""

import logging
from functools import lru_cache

from foodorder.core.config import get_settings
from foodorder.services.cache.base import BaseCacheService
from foodorder.services.cache.memory import MemoryCacheService
from foodorder.services.cache.redis import RedisCacheService

logger = logging.getLogger(__name__)


@lru_cache()
def get_cache_service() -> BaseCacheService:
    """
    Get the configured cache service instance.

    The instance is cached so the in-memory store (development) and the
    Redis connection pool (production) are shared across requests.
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Cache Service: Using MemoryCacheService (development mode)")
        return MemoryCacheService()

    logger.info(f"Cache Service: Using RedisCacheService ({settings.env_mode.value} mode)")
    return RedisCacheService()


def reset_cache_service() -> None:
    """Clear the cached cache service instance."""
    get_cache_service.cache_clear()
    logger.debug("Cache service instance cleared")


__all__ = [
    "get_cache_service",
    "reset_cache_service",
    "BaseCacheService",
    "MemoryCacheService",
    "RedisCacheService",
]
