"""
API Router for bucket listings and raw object downloads.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ...service import BucketBrowserService
from ..dependencies import get_service
from ..dto import ErrorResponse

log = logging.getLogger(__name__)

router = APIRouter()


@router.get("/files", response_model=list[dict[str, Any]], responses={500: {"model": ErrorResponse}})
def list_files(service: BucketBrowserService = Depends(get_service)):
    """Lists every object in the bucket."""
    log_prefix = "[GET /api/files] "
    objects = service.list_objects()
    log.info("%sFound %d objects", log_prefix, len(objects))
    return [obj.to_dict() for obj in objects]


@router.get(
    "/files/{key:path}",
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def get_file(key: str, service: BucketBrowserService = Depends(get_service)):
    """Streams an object through unchanged. Archives are refused."""
    log_prefix = f"[GET /api/files/{key}] "
    stream = service.open_object(key)
    log.info("%sStreaming %s (%s bytes)", log_prefix, stream.content_type, stream.content_length)

    headers = {}
    if stream.content_length is not None:
        headers["Content-Length"] = str(stream.content_length)
    return StreamingResponse(
        stream.iter_chunks(),
        media_type=stream.content_type,
        headers=headers,
    )
