"""Application-level exceptions that are not tied to a storage or cache backend."""


class BucketBrowserError(Exception):
    """Base exception for bucket browser failures."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ArchiveDownloadForbiddenError(BucketBrowserError):
    """Raised when a client asks to download an archive file."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Downloading {key!r} is not allowed: archive files cannot be retrieved")


class ConfigurationError(BucketBrowserError, ValueError):
    """Raised when required configuration is missing or malformed."""
