"""
Cache Service Abstract Base Class

Defines the key-value contract used for menu listings, paginated order
listings and refresh tokens. Both the in-memory and the Redis
implementations honour the same TTL semantics.

Design Pattern: Strategy Pattern
    - Development runs on the in-memory store, no Redis needed
    - Staging/production run on Redis
"""

from abc import ABC, abstractmethod
from typing import Optional


class BaseCacheService(ABC):
    """
    Abstract base class for cache services.

    Values are plain strings; callers serialize (usually JSON) themselves.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the cache backend (e.g. "memory", "redis")."""
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when missing or expired."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """
        Store a value.

        Args:
            key: Cache key
            value: String payload
            ttl: Seconds until expiry (None = no expiry)
        """
        pass

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Delete keys. Missing keys are not an error. Returns count removed."""
        pass

    @abstractmethod
    async def pop(self, key: str) -> Optional[str]:
        """
        Atomically read and delete a key.

        Of several concurrent callers popping the same key, at most one
        gets the value.
        """
        pass

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob-style pattern."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        pass

    async def close(self) -> None:
        """Release connections. No-op by default."""
        return None
