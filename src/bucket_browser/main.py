"""
Bucket Browser backend entry point.

Usage:
    python -m bucket_browser.main --config config.json
    bucket-browser --config config.yaml --log-level DEBUG

Environment variables (override values from the config file):
    S3_REGION, S3_BUCKET, S3_ACCESS_KEY_ID, S3_SECRET_ACCESS_KEY, S3_ENDPOINT
    REDIS_HOST, REDIS_PORT, REDIS_PASSWORD, REDIS_DB
    SERVER_HOST, SERVER_PORT
    LOG_LEVEL
"""

import argparse
import logging
import os
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from .api import create_app
from .cache import create_cache
from .config import AppConfig
from .exceptions import ConfigurationError
from .service import BucketBrowserService
from .storage import create_storage_client

log = logging.getLogger(__name__)


def _load_dotenv() -> None:
    env_path = Path(".env")
    if not env_path.exists():
        env_path = Path(__file__).parent.parent.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path)
        log.info("Loaded environment from: %s", env_path)


def build_service(config: AppConfig) -> BucketBrowserService:
    storage = create_storage_client(config.s3)
    cache = create_cache(config.redis)
    return BucketBrowserService(storage, cache, config)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Bucket Browser backend",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config", "-c",
        help="Path to JSON or YAML configuration file",
        default=os.environ.get("BUCKET_BROWSER_CONFIG", "config.json"),
    )
    parser.add_argument(
        "--log-level", "-l",
        help="Logging level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    _load_dotenv()

    try:
        config = AppConfig.load(args.config)
    except ConfigurationError as e:
        log.critical("Failed to load config: %s", e)
        sys.exit(1)

    service = build_service(config)
    app = create_app(service, config)

    log.info("Server listening on %s:%d", config.server.host, config.server.port)
    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=args.log_level.lower(),
        ws_ping_interval=config.realtime.ping_period_seconds,
        ws_ping_timeout=config.realtime.pong_wait_seconds,
    )
    log.info("Server exited properly")


if __name__ == "__main__":
    main()
