"""Redis-backed cache."""

from __future__ import annotations

import logging

import redis

from ..config import RedisConfig
from .base import CacheBackend, CacheError

log = logging.getLogger(__name__)


class RedisCache(CacheBackend):
    """
    Cache backed by a single Redis database.

    Values are stored as raw bytes with ``SET key value EX ttl``. The
    connection is verified with ``PING`` on construction so a misconfigured
    cache is detected at startup rather than on the first request.
    """

    name = "redis"

    def __init__(self, config: RedisConfig, client: redis.Redis | None = None):
        self._address = config.address()
        if client is None:
            client = redis.Redis(
                host=config.host,
                port=config.port,
                db=config.db,
                password=config.password or None,
                socket_timeout=config.connect_timeout_seconds,
                socket_connect_timeout=config.connect_timeout_seconds,
                decode_responses=False,
            )
        self._client = client
        try:
            self._client.ping()
        except redis.RedisError as e:
            raise CacheError(f"Redis at {self._address} is unreachable: {e}") from e

    def get(self, key: str) -> bytes | None:
        try:
            return self._client.get(key)
        except redis.RedisError as e:
            raise CacheError(f"GET {key} failed: {e}") from e

    def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        try:
            self._client.set(key, value, ex=ttl_seconds)
        except redis.RedisError as e:
            raise CacheError(f"SET {key} failed: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except redis.RedisError as e:
            raise CacheError(f"DEL {key} failed: {e}") from e

    def close(self) -> None:
        try:
            self._client.close()
        except redis.RedisError as e:
            log.debug("Error closing Redis connection to %s: %s", self._address, e)
