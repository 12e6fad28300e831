"""Backend-agnostic storage accessor used by the indexer, the hub and the API."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator

ARCHIVE_SUFFIX = ".tar.gz"
METADATA_SUFFIX = ".json"


def is_archive_key(key: str) -> bool:
    return key.endswith(ARCHIVE_SUFFIX)


def is_metadata_key(key: str) -> bool:
    return key.endswith(METADATA_SUFFIX)


@dataclass(frozen=True)
class BucketObject:
    """One bucket entry as seen by a single listing."""

    key: str
    size: int
    last_modified: datetime
    etag: str

    @property
    def is_archive(self) -> bool:
        return is_archive_key(self.key)

    @property
    def is_metadata(self) -> bool:
        return is_metadata_key(self.key)

    def to_dict(self) -> dict:
        """Wire representation shared by the listing endpoint and the push channel."""
        return {
            "key": self.key,
            "size": self.size,
            "lastModified": self.last_modified.isoformat(),
            "etag": self.etag,
            "isArchive": self.is_archive,
            "isMetadata": self.is_metadata,
        }


@dataclass
class StorageObject:
    """Fully-read object content alongside its transport metadata."""

    key: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def content_length(self) -> int:
        return len(self.content)


class ObjectStream:
    """Streaming handle for an object body.

    The caller must exhaust ``iter_chunks`` or call ``close`` to release the
    underlying connection.
    """

    def __init__(
        self,
        key: str,
        chunks: Iterator[bytes],
        content_type: str,
        content_length: int | None,
        close: Callable[[], None] | None = None,
    ):
        self.key = key
        self.content_type = content_type
        self.content_length = content_length
        self._chunks = chunks
        self._close = close
        self._closed = False

    def iter_chunks(self) -> Iterator[bytes]:
        try:
            yield from self._chunks
        finally:
            self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._close is not None:
            self._close()


class ObjectStorageClient(ABC):
    """Read-only interface over a single bucket."""

    @abstractmethod
    def list_objects(self, prefix: str = "") -> list[BucketObject]:
        """List every object under *prefix*. Raises StorageError on failure."""

    @abstractmethod
    def get_object(self, key: str) -> StorageObject:
        """Read an object fully. Raises StorageNotFoundError if missing."""

    @abstractmethod
    def open_object(self, key: str) -> ObjectStream:
        """Open an object for streaming. Raises StorageNotFoundError if missing."""
