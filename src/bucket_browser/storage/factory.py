"""Factory for the storage accessor based on configuration."""

import logging

from ..config import S3Config
from ..exceptions import ConfigurationError
from .base import ObjectStorageClient

log = logging.getLogger(__name__)


def create_storage_client(config: S3Config) -> ObjectStorageClient:
    """Create the storage accessor for the configured bucket.

    Raises:
        ConfigurationError: If no bucket name is configured.
    """
    from .s3_client import S3StorageClient

    if not config.bucket:
        raise ConfigurationError("Bucket name required: set s3.bucket or S3_BUCKET")

    log.info(
        "Using S3 bucket %s (region=%s, endpoint=%s)",
        config.bucket,
        config.region,
        config.endpoint or "default",
    )
    return S3StorageClient(
        bucket_name=config.bucket,
        region=config.region,
        endpoint_url=config.endpoint,
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.secret_access_key,
    )
