"""
API Router for facet options, metadata queries and single-record lookups.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from ...indexing.parser import RawBlob
from ...indexing.query import parse_metadata_filter, parse_pagination
from ...service import BucketBrowserService
from ..dependencies import get_service
from ..dto import ErrorResponse, FilterOptionsResponse, MetadataPageResponse

log = logging.getLogger(__name__)

router = APIRouter()


@router.get("/metadata/options", response_model=FilterOptionsResponse)
def get_metadata_options(service: BucketBrowserService = Depends(get_service)):
    """Returns the current facet values for the filter controls."""
    log_prefix = "[GET /api/metadata/options] "
    options = service.get_facets()
    log.info(
        "%sReturning options with %d versions, %d statuses, %d uploaders, %d nodes, %d slot ranges",
        log_prefix,
        len(options.solana_versions),
        len(options.statuses),
        len(options.uploaded_by),
        len(options.nodes),
        len(options.slot_ranges),
    )
    return FilterOptionsResponse(
        solana_versions=list(options.solana_versions),
        statuses=list(options.statuses),
        uploaded_by=list(options.uploaded_by),
        nodes=list(options.nodes),
        slot_ranges=list(options.slot_ranges),
    )


@router.get("/metadata", response_model=MetadataPageResponse, responses={500: {"model": ErrorResponse}})
def list_metadata(request: Request, service: BucketBrowserService = Depends(get_service)):
    """
    Lists metadata records matching the query-string filter, newest first.

    Unparseable filter values are ignored rather than rejected.
    """
    log_prefix = "[GET /api/metadata] "
    params = request.query_params
    log.info("%sRequest received with query: %s", log_prefix, request.url.query)

    flt = parse_metadata_filter(params)
    page, page_size = parse_pagination(params.get("page"), params.get("page_size"))
    result = service.query_metadata(flt, page, page_size)

    return MetadataPageResponse(
        items=[record.to_response() for record in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
    )


@router.get(
    "/metadata/{key:path}",
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def get_metadata(key: str, service: BucketBrowserService = Depends(get_service)):
    """Returns one parsed record, or the raw content if it is not a JSON object."""
    log_prefix = f"[GET /api/metadata/{key}] "
    result = service.get_metadata_record(key)
    if isinstance(result, RawBlob):
        log.info("%sReturning raw content as %s", log_prefix, result.content_type)
        return Response(content=result.content, media_type=result.content_type)
    log.info("%sReturning parsed metadata", log_prefix)
    return JSONResponse(content=result.to_response())
