"""Optional key/value cache with expiration."""

from .base import CacheBackend, CacheError, NullCache
from .factory import create_cache

__all__ = ["CacheBackend", "CacheError", "NullCache", "create_cache"]
