"""Read-only object storage access for the bucket browser."""

from .base import (
    ARCHIVE_SUFFIX,
    METADATA_SUFFIX,
    BucketObject,
    ObjectStorageClient,
    ObjectStream,
    StorageObject,
    is_archive_key,
    is_metadata_key,
)
from .exceptions import (
    StorageConnectionError,
    StorageError,
    StorageNotFoundError,
    StoragePermissionError,
)
from .factory import create_storage_client

__all__ = [
    "ARCHIVE_SUFFIX",
    "METADATA_SUFFIX",
    "BucketObject",
    "ObjectStorageClient",
    "ObjectStream",
    "StorageObject",
    "is_archive_key",
    "is_metadata_key",
    "StorageConnectionError",
    "StorageError",
    "StorageNotFoundError",
    "StoragePermissionError",
    "create_storage_client",
]
