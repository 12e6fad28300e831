"""
Configuration for the bucket browser backend.

Settings are read from a JSON or YAML file (optional) and then overridden by
environment variables:

    S3_REGION, S3_BUCKET, S3_ACCESS_KEY_ID, S3_SECRET_ACCESS_KEY, S3_ENDPOINT
    REDIS_HOST, REDIS_PORT, REDIS_PASSWORD, REDIS_DB
    SERVER_HOST, SERVER_PORT
"""

import json
import logging
import os
from pathlib import Path
from typing import Mapping, Optional

import yaml
from pydantic import BaseModel, Field

from .exceptions import ConfigurationError

log = logging.getLogger(__name__)


class S3Config(BaseModel):
    """Object storage configuration."""

    region: str = Field(default="us-east-1", description="Bucket region")
    bucket: str = Field(default="", description="Bucket name (required)")
    access_key_id: Optional[str] = Field(
        default=None,
        alias="accessKeyId",
        description="Static access key; falls back to the default credential chain",
    )
    secret_access_key: Optional[str] = Field(
        default=None, alias="secretAccessKey", description="Static secret key"
    )
    endpoint: Optional[str] = Field(
        default=None, description="Custom endpoint for S3-compatible stores"
    )
    prefix: str = Field(default="", description="Only list objects under this prefix")

    model_config = {"populate_by_name": True}


class RedisConfig(BaseModel):
    """Cache configuration. The cache is optional; failures fall back to no cache."""

    enabled: bool = True
    host: str = "localhost"
    port: int = 6379
    password: Optional[str] = None
    db: int = 0
    connect_timeout_seconds: float = 5.0

    def address(self) -> str:
        return f"{self.host}:{self.port}"


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8080
    static_dir: Optional[str] = Field(
        default=None, description="Directory of the built frontend, mounted at /"
    )


class IndexingConfig(BaseModel):
    """Facet indexing parameters."""

    workers: int = Field(default=10, ge=1, description="Concurrent sidecar fetches per pass")
    cache_ttl_seconds: int = Field(default=300, ge=1, description="Facet cache expiration")
    cache_key: str = Field(default="metadata:options", description="Facet cache key")


class RealtimeConfig(BaseModel):
    """Push channel parameters."""

    poll_interval_seconds: float = Field(default=10.0, gt=0)
    client_queue_size: int = Field(default=256, ge=1)
    pong_wait_seconds: float = Field(default=60.0, gt=0)
    write_wait_seconds: float = Field(default=10.0, gt=0)

    @property
    def ping_period_seconds(self) -> float:
        return self.pong_wait_seconds * 9 / 10


class AppConfig(BaseModel):
    """Top-level application configuration."""

    s3: S3Config = Field(default_factory=S3Config)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    indexing: IndexingConfig = Field(default_factory=IndexingConfig)
    realtime: RealtimeConfig = Field(default_factory=RealtimeConfig)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "AppConfig":
        """Create configuration from dictionary."""
        return cls(**config_dict)

    @classmethod
    def from_file(cls, path: str | Path) -> "AppConfig":
        """Load configuration from a JSON or YAML file."""
        path = Path(path)
        with open(path, "r") as f:
            if path.suffix in (".yaml", ".yml"):
                config_dict = yaml.safe_load(f) or {}
            else:
                config_dict = json.load(f)
        if not isinstance(config_dict, dict):
            raise ConfigurationError(f"Config file {path} must contain an object")
        return cls.from_dict(config_dict)

    @classmethod
    def load(
        cls,
        path: str | Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "AppConfig":
        """
        Load configuration from *path* (if it exists) and apply environment overrides.

        Raises:
            ConfigurationError: If the file cannot be decoded or no bucket is configured.
        """
        if path is not None and Path(path).is_file():
            try:
                config = cls.from_file(path)
            except (OSError, ValueError, yaml.YAMLError) as e:
                raise ConfigurationError(f"Failed to load config file {path}: {e}") from e
            log.info("Loaded configuration from %s", path)
        else:
            log.info(
                "Config file %s not found, using environment variables and defaults",
                path,
            )
            config = cls()

        config.apply_environment(os.environ if environ is None else environ)

        if not config.s3.bucket:
            raise ConfigurationError("S3 bucket name is required")
        return config

    def apply_environment(self, environ: Mapping[str, str]) -> None:
        """Override settings from environment variables. Malformed integers are ignored."""
        string_overrides = {
            "S3_REGION": (self.s3, "region"),
            "S3_BUCKET": (self.s3, "bucket"),
            "S3_ACCESS_KEY_ID": (self.s3, "access_key_id"),
            "S3_SECRET_ACCESS_KEY": (self.s3, "secret_access_key"),
            "S3_ENDPOINT": (self.s3, "endpoint"),
            "REDIS_HOST": (self.redis, "host"),
            "REDIS_PASSWORD": (self.redis, "password"),
            "SERVER_HOST": (self.server, "host"),
        }
        int_overrides = {
            "REDIS_PORT": (self.redis, "port"),
            "REDIS_DB": (self.redis, "db"),
            "SERVER_PORT": (self.server, "port"),
        }

        for env_name, (section, attr) in string_overrides.items():
            value = environ.get(env_name)
            if value:
                setattr(section, attr, value)

        for env_name, (section, attr) in int_overrides.items():
            value = environ.get(env_name)
            if not value:
                continue
            try:
                setattr(section, attr, int(value))
            except ValueError:
                log.warning("Ignoring non-integer %s=%r", env_name, value)
