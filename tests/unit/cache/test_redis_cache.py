"""Tests for the Redis cache backend and its factory."""

from unittest.mock import MagicMock, patch

import pytest
import redis

from bucket_browser.cache import NullCache, create_cache
from bucket_browser.cache.base import CacheError
from bucket_browser.cache.redis_cache import RedisCache
from bucket_browser.config import RedisConfig


@pytest.fixture
def redis_client():
    return MagicMock(spec=redis.Redis)


class TestRedisCache:
    def test_pings_on_construction(self, redis_client):
        RedisCache(RedisConfig(), client=redis_client)
        redis_client.ping.assert_called_once()

    def test_unreachable_raises_cache_error(self, redis_client):
        redis_client.ping.side_effect = redis.ConnectionError("refused")
        with pytest.raises(CacheError):
            RedisCache(RedisConfig(), client=redis_client)

    def test_set_uses_expiration(self, redis_client):
        cache = RedisCache(RedisConfig(), client=redis_client)
        cache.set("metadata:options", b"{}", 300)
        redis_client.set.assert_called_once_with("metadata:options", b"{}", ex=300)

    def test_get_and_delete(self, redis_client):
        redis_client.get.return_value = b"value"
        cache = RedisCache(RedisConfig(), client=redis_client)
        assert cache.get("k") == b"value"
        cache.delete("k")
        redis_client.delete.assert_called_once_with("k")

    def test_operation_errors_are_wrapped(self, redis_client):
        redis_client.get.side_effect = redis.TimeoutError("slow")
        cache = RedisCache(RedisConfig(), client=redis_client)
        with pytest.raises(CacheError):
            cache.get("k")

    def test_builds_client_from_config(self):
        config = RedisConfig(host="cache", port=6380, password="pw", db=2)
        with patch("bucket_browser.cache.redis_cache.redis.Redis") as redis_cls:
            RedisCache(config)
        kwargs = redis_cls.call_args.kwargs
        assert kwargs["host"] == "cache"
        assert kwargs["port"] == 6380
        assert kwargs["password"] == "pw"
        assert kwargs["db"] == 2
        assert kwargs["decode_responses"] is False


class TestCreateCache:
    def test_disabled_returns_null_cache(self):
        cache = create_cache(RedisConfig(enabled=False))
        assert isinstance(cache, NullCache)
        assert cache.name == "none"

    def test_unreachable_falls_back_to_null_cache(self):
        with patch("bucket_browser.cache.redis_cache.redis.Redis") as redis_cls:
            redis_cls.return_value.ping.side_effect = redis.ConnectionError("refused")
            cache = create_cache(RedisConfig())
        assert isinstance(cache, NullCache)

    def test_connected(self):
        with patch("bucket_browser.cache.redis_cache.redis.Redis"):
            cache = create_cache(RedisConfig())
        assert isinstance(cache, RedisCache)
        assert cache.name == "redis"

    def test_null_cache_always_misses(self):
        cache = NullCache()
        cache.set("k", b"v", 10)
        assert cache.get("k") is None
