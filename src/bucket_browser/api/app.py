"""
FastAPI application factory for the bucket browser backend.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.staticfiles import StaticFiles

from ..config import AppConfig
from ..service import BucketBrowserService
from . import dependencies
from .exception_handlers import register_exception_handlers
from .routers import debug, files, health, metadata, realtime

log = logging.getLogger(__name__)

API_PREFIX = "/api"


def create_app(service: BucketBrowserService, config: Optional[AppConfig] = None) -> FastAPI:
    """
    Build the app around *service*.

    The lifespan starts the push hub and the initial indexing pass, and tears
    both down on shutdown.
    """
    config = config or AppConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("Starting bucket browser services...")
        await service.hub.start()
        service.start()
        try:
            yield
        finally:
            log.info("Shutting down bucket browser services...")
            await service.hub.stop()
            service.close()

    app = FastAPI(
        title="Bucket Browser",
        description="Browse bucket objects and their snapshot metadata",
        lifespan=lifespan,
    )

    dependencies.set_service(service)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.include_router(health.router, prefix=API_PREFIX, tags=["Health"])
    app.include_router(files.router, prefix=API_PREFIX, tags=["Files"])
    app.include_router(metadata.router, prefix=API_PREFIX, tags=["Metadata"])
    app.include_router(debug.router, prefix=API_PREFIX, tags=["Debug"])
    app.include_router(realtime.router, prefix=API_PREFIX, tags=["Realtime"])

    register_exception_handlers(app)

    _setup_static_files(app, config.server.static_dir)
    return app


def _setup_static_files(app: FastAPI, static_dir: Optional[str]) -> None:
    if not static_dir:
        log.info("No static directory configured, frontend will not be served.")
        return
    if not Path(static_dir).is_dir():
        log.warning(
            "Static files directory '%s' not found. Frontend will not be served.",
            static_dir,
        )
        return
    app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
    log.info("Mounted static files directory '%s' at '/'", static_dir)
