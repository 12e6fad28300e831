from fastapi import APIRouter, Depends

from ...service import BucketBrowserService
from ..dependencies import get_service
from ..dto import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(service: BucketBrowserService = Depends(get_service)):
    """Basic health check endpoint."""
    return HealthResponse(ok=True, cache=service.cache_name)
