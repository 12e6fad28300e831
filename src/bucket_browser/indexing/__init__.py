"""Sidecar parsing, facet indexing and metadata queries."""

from .facets import (
    FacetIndexer,
    FacetStore,
    FilterOptions,
    compare_versions,
    sort_slot_ranges,
    sort_versions,
)
from .parser import (
    Classification,
    MetadataRecord,
    ParseOutcome,
    ParseResult,
    RawBlob,
    classify,
    extract_slot_and_node,
    is_sidecar_key,
    parse_sidecar,
    slot_range,
    sniff_content_type,
)
from .query import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    MetadataFilter,
    MetadataPage,
    matches_filter,
    paginate,
    parse_metadata_filter,
    parse_pagination,
    query_metadata,
    sort_records,
)

__all__ = [
    "Classification",
    "DEFAULT_PAGE_SIZE",
    "FacetIndexer",
    "FacetStore",
    "FilterOptions",
    "MAX_PAGE_SIZE",
    "MetadataFilter",
    "MetadataPage",
    "MetadataRecord",
    "ParseOutcome",
    "ParseResult",
    "RawBlob",
    "classify",
    "compare_versions",
    "extract_slot_and_node",
    "is_sidecar_key",
    "matches_filter",
    "paginate",
    "parse_metadata_filter",
    "parse_pagination",
    "parse_sidecar",
    "query_metadata",
    "slot_range",
    "sniff_content_type",
    "sort_records",
    "sort_slot_ranges",
    "sort_versions",
]
