"""
Dependency providers for the API routers.

The service instance is registered once by ``create_app`` and handed to
route handlers through ``Depends(get_service)``.
"""

import logging
from typing import Optional

from fastapi import HTTPException, status

from ..service import BucketBrowserService

log = logging.getLogger(__name__)

_service: Optional[BucketBrowserService] = None


def set_service(service: Optional[BucketBrowserService]) -> None:
    """Called during app construction to provide the service instance."""
    global _service
    if _service is not None and service is not None and _service is not service:
        log.warning("Replacing previously registered BucketBrowserService.")
    _service = service


def get_service() -> BucketBrowserService:
    """FastAPI dependency to get the BucketBrowserService instance."""
    if _service is None:
        log.critical("BucketBrowserService accessed before it was set!")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not yet initialized.",
        )
    return _service
