"""Errors raised by the storage accessor.

Listing callers surface these as server errors; a missing key maps to a
not-found response.
"""


class StorageError(Exception):
    """Base exception for bucket listing and object retrieval."""

    def __init__(self, message: str, key: str | None = None, cause: Exception | None = None):
        self.key = key
        self.cause = cause
        super().__init__(message)


class StorageNotFoundError(StorageError):
    """The bucket holds no object under the requested key."""


class StoragePermissionError(StorageError):
    """Credentials were rejected or the bucket policy denied the call."""


class StorageConnectionError(StorageError):
    """The endpoint could not be reached or the connection dropped mid-call."""
