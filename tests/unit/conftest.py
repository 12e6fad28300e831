"""Shared in-memory doubles for the storage accessor and the cache."""

import json
from datetime import datetime, timezone

import pytest

from bucket_browser.cache.base import CacheBackend
from bucket_browser.storage.base import (
    BucketObject,
    ObjectStorageClient,
    ObjectStream,
    StorageObject,
)
from bucket_browser.storage.exceptions import StorageNotFoundError

DEFAULT_MTIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeStorage(ObjectStorageClient):
    """Bucket held in a dict. Errors can be injected per call."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.list_calls = 0
        self.get_calls: list[str] = []
        self.list_error: Exception | None = None
        self.get_errors: dict[str, Exception] = {}

    def put(self, key: str, content, content_type: str = "application/json") -> None:
        if isinstance(content, dict):
            content = json.dumps(content)
        if isinstance(content, str):
            content = content.encode("utf-8")
        self.objects[key] = content
        self.content_types[key] = content_type

    def list_objects(self, prefix: str = "") -> list[BucketObject]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return [
            BucketObject(key=key, size=len(body), last_modified=DEFAULT_MTIME, etag=f'"{key}"')
            for key, body in sorted(self.objects.items())
            if key.startswith(prefix)
        ]

    def _lookup(self, key: str) -> bytes:
        self.get_calls.append(key)
        if key in self.get_errors:
            raise self.get_errors[key]
        if key not in self.objects:
            raise StorageNotFoundError(f"NoSuchKey: {key}", key=key)
        return self.objects[key]

    def get_object(self, key: str) -> StorageObject:
        content = self._lookup(key)
        return StorageObject(key=key, content=content, content_type=self.content_types[key])

    def open_object(self, key: str) -> ObjectStream:
        content = self._lookup(key)
        return ObjectStream(
            key=key,
            chunks=iter([content[:4], content[4:]]),
            content_type=self.content_types[key],
            content_length=len(content),
        )


class MemoryCache(CacheBackend):
    name = "redis"

    def __init__(self):
        self.values: dict[str, bytes] = {}
        self.ttls: dict[str, int] = {}

    def get(self, key):
        return self.values.get(key)

    def set(self, key, value, ttl_seconds):
        self.values[key] = value
        self.ttls[key] = ttl_seconds

    def delete(self, key):
        self.values.pop(key, None)
        self.ttls.pop(key, None)


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def memory_cache() -> MemoryCache:
    return MemoryCache()
