"""
In-Memory Cache Service Implementation

Process-local dictionary with per-key expiry. Used in development mode
(ENV_MODE=development) and in tests so the full flow runs without Redis.
"""

import fnmatch
import logging
import time
from typing import Optional

from foodorder.services.cache.base import BaseCacheService

logger = logging.getLogger(__name__)

# Writes between sweeps of expired entries
SWEEP_INTERVAL = 100


class MemoryCacheService(BaseCacheService):
    """
    Dictionary-backed cache.

    Expired entries are dropped when they are next read or matched, and
    every SWEEP_INTERVAL writes a sweep removes the ones never read again.
    """

    def __init__(self):
        self._store: dict[str, tuple[str, Optional[float]]] = {}
        self._writes = 0
        logger.info("MemoryCacheService initialized")

    @property
    def provider_name(self) -> str:
        return "memory"

    def _now(self) -> float:
        return time.monotonic()

    def _is_expired(self, expires_at: Optional[float]) -> bool:
        return expires_at is not None and expires_at <= self._now()

    def _sweep(self) -> int:
        expired = [key for key, (_, expires_at) in self._store.items() if self._is_expired(expires_at)]
        for key in expired:
            del self._store[key]
        if expired:
            logger.debug(f"MemoryCache: swept {len(expired)} expired keys")
        return len(expired)

    async def get(self, key: str) -> Optional[str]:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._is_expired(expires_at):
            self._store.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        self._writes += 1
        if self._writes % SWEEP_INTERVAL == 0:
            self._sweep()
        expires_at = self._now() + ttl if ttl else None
        self._store[key] = (value, expires_at)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._store.pop(key, None) is not None:
                removed += 1
        return removed

    async def pop(self, key: str) -> Optional[str]:
        # No await between read and removal, so this is atomic on the event loop
        entry = self._store.pop(key, None)
        if entry is None:
            return None
        value, expires_at = entry
        if self._is_expired(expires_at):
            return None
        return value

    async def delete_pattern(self, pattern: str) -> int:
        self._sweep()
        matches = [key for key in self._store if fnmatch.fnmatchcase(key, pattern)]
        return await self.delete(*matches)

    async def health_check(self) -> bool:
        return True
