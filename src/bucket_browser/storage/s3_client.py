"""S3-compatible storage accessor (AWS S3, MinIO, SeaweedFS)."""

import logging

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
)

from .base import BucketObject, ObjectStorageClient, ObjectStream, StorageObject
from .exceptions import (
    StorageConnectionError,
    StorageError,
    StorageNotFoundError,
    StoragePermissionError,
)

log = logging.getLogger(__name__)

_ERROR_CODE_MAP = {
    "NoSuchKey": StorageNotFoundError,
    "NotFound": StorageNotFoundError,
    "404": StorageNotFoundError,
    "NoSuchBucket": StorageNotFoundError,
    "AccessDenied": StoragePermissionError,
    "403": StoragePermissionError,
    "InvalidAccessKeyId": StoragePermissionError,
    "SignatureDoesNotMatch": StoragePermissionError,
    "ExpiredToken": StoragePermissionError,
}

_STREAM_CHUNK_SIZE = 64 * 1024


class S3StorageClient(ObjectStorageClient):
    """Read-only accessor for one S3 bucket."""

    def __init__(
        self,
        bucket_name: str,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        aws_access_key_id: str | None = None,
        aws_secret_access_key: str | None = None,
    ):
        self._bucket = bucket_name

        kwargs: dict = {
            "config": Config(
                region_name=region,
                signature_version="s3v4",
                retries={"max_attempts": 3, "mode": "standard"},
            ),
        }
        if aws_access_key_id and aws_secret_access_key:
            kwargs["aws_access_key_id"] = aws_access_key_id
            kwargs["aws_secret_access_key"] = aws_secret_access_key
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url

        self._client = boto3.client("s3", **kwargs)

    @property
    def bucket(self) -> str:
        return self._bucket

    def list_objects(self, prefix: str = "") -> list[BucketObject]:
        result: list[BucketObject] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    result.append(
                        BucketObject(
                            key=obj["Key"],
                            size=obj.get("Size") or 0,
                            last_modified=obj["LastModified"],
                            etag=obj.get("ETag", ""),
                        )
                    )
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e) from e
        log.debug("Listed %d objects under prefix %r", len(result), prefix)
        return result

    def get_object(self, key: str) -> StorageObject:
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
            body = response["Body"]
            try:
                content = body.read()
            finally:
                body.close()
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, key) from e
        return StorageObject(
            key=key,
            content=content,
            content_type=response.get("ContentType", "application/octet-stream"),
        )

    def open_object(self, key: str) -> ObjectStream:
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, key) from e
        body = response["Body"]
        return ObjectStream(
            key=key,
            chunks=body.iter_chunks(chunk_size=_STREAM_CHUNK_SIZE),
            content_type=response.get("ContentType", "application/octet-stream"),
            content_length=response.get("ContentLength"),
            close=body.close,
        )

    def _translate_error(self, error: Exception, key: str | None = None) -> StorageError:
        if isinstance(error, ClientError):
            code = error.response.get("Error", {}).get("Code", "")
            exc_cls = _ERROR_CODE_MAP.get(code, StorageError)
        elif isinstance(error, NoCredentialsError):
            exc_cls = StoragePermissionError
        else:
            exc_cls = StorageConnectionError
        return exc_cls(str(error), key=key, cause=error)
