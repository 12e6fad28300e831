"""Cache port used for facet snapshots.

The cache is optional. Callers treat ``CacheError`` as a miss and keep
serving from storage; when no backend is available a ``NullCache`` is
injected instead.
"""

from abc import ABC, abstractmethod


class CacheError(Exception):
    """Raised when the cache backend cannot complete an operation."""


class CacheBackend(ABC):
    """Key/value store with per-entry expiration."""

    name: str = "cache"

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Return the stored value, or None on a miss."""

    @abstractmethod
    def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        """Store *value* under *key* for *ttl_seconds*."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove *key*. No-op if it is absent."""

    def close(self) -> None:
        """Release backend resources."""


class NullCache(CacheBackend):
    """Cache that stores nothing and always misses."""

    name = "none"

    def get(self, key: str) -> bytes | None:
        return None

    def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        pass

    def delete(self, key: str) -> None:
        pass
