"""
API Router for operator debug endpoints.
"""

import logging

from fastapi import APIRouter, Depends

from ...service import BucketBrowserService
from ..dependencies import get_service
from ..dto import ErrorResponse, ExamineFileResponse, MessageResponse

log = logging.getLogger(__name__)

router = APIRouter()


@router.get("/debug/reindex", response_model=MessageResponse)
def reindex(service: BucketBrowserService = Depends(get_service)):
    """Drops the cached facets and starts a new indexing pass in the background."""
    service.reindex()
    return MessageResponse(message="Reindexing started")


@router.get("/debug/examine-file", response_model=ExamineFileResponse, responses={404: {"model": ErrorResponse}})
def examine_file(service: BucketBrowserService = Depends(get_service)):
    """Logs the content of the first sidecar in the bucket."""
    return ExamineFileResponse(**service.examine_first_sidecar())
