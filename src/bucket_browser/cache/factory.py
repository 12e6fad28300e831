"""Factory for the optional cache backend."""

import logging

from ..config import RedisConfig
from .base import CacheBackend, CacheError, NullCache

log = logging.getLogger(__name__)


def create_cache(config: RedisConfig) -> CacheBackend:
    """Connect to Redis, or fall back to a NullCache if it is disabled or unreachable."""
    if not config.enabled:
        log.info("Cache disabled by configuration, continuing without cache")
        return NullCache()

    from .redis_cache import RedisCache

    try:
        cache = RedisCache(config)
    except CacheError as e:
        log.warning("Failed to create Redis cache: %s", e)
        log.warning("Continuing without Redis cache")
        return NullCache()

    log.info("Connected to Redis cache at %s", config.address())
    return cache
