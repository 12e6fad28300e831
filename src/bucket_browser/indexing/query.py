"""Filtering, ordering and pagination of parsed metadata records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from typing import Iterable, Mapping, Optional

from .parser import MetadataRecord

log = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

_DATE_FORMAT = "%Y-%m-%d"


@dataclass
class MetadataFilter:
    """Conjunctive record filter. Unset fields match everything."""

    solana_version: str = ""
    status: str = ""
    uploaded_by: str = ""
    node: str = ""
    slot_range: str = ""
    min_slot: int = 0
    max_slot: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    search_term: str = ""

    def is_empty(self) -> bool:
        return self == MetadataFilter()


@dataclass
class MetadataPage:
    items: list[MetadataRecord] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE


def matches_filter(record: MetadataRecord, flt: MetadataFilter) -> bool:
    for wanted, actual in (
        (flt.solana_version, record.solana_version),
        (flt.status, record.status),
        (flt.uploaded_by, record.uploaded_by),
        (flt.node, record.node),
        (flt.slot_range, record.slot_range),
    ):
        if wanted and (actual or "") != wanted:
            return False

    if flt.min_slot > 0 and record.slot < flt.min_slot:
        return False
    if flt.max_slot > 0 and record.slot > flt.max_slot:
        return False

    # an unknown timestamp predates any start bound but never exceeds an end bound
    if flt.start_time is not None and (
        record.timestamp is None or record.timestamp < flt.start_time
    ):
        return False
    if flt.end_time is not None and record.timestamp is not None and record.timestamp > flt.end_time:
        return False

    if flt.search_term:
        term = flt.search_term.lower()
        haystack = (
            record.solana_version,
            record.status,
            record.uploaded_by,
            record.node,
            record.hash,
            record.file_name,
        )
        if not any(term in value.lower() for value in haystack if value):
            return False

    return True


def _sort_key(record: MetadataRecord) -> tuple[int, float, int]:
    if record.timestamp is not None:
        return (0, -record.timestamp.timestamp(), -record.slot)
    return (1, 0.0, -record.slot)


def sort_records(records: Iterable[MetadataRecord]) -> list[MetadataRecord]:
    """
    Order records newest first.

    Timestamped records come first by timestamp descending; records without a
    timestamp follow by slot descending. Slot descending breaks ties in both
    groups.
    """
    return sorted(records, key=_sort_key)


def parse_pagination(page: object = None, page_size: object = None) -> tuple[int, int]:
    """Decode page and page size, falling back to defaults for invalid input."""
    parsed_page = _positive_int(page)
    parsed_size = _positive_int(page_size)
    return (
        parsed_page or 1,
        min(parsed_size, MAX_PAGE_SIZE) if parsed_size else DEFAULT_PAGE_SIZE,
    )


def _positive_int(value: object) -> int:
    if value is None or value == "":
        return 0
    try:
        number = int(value)
    except (TypeError, ValueError):
        return 0
    return number if number > 0 else 0


def paginate(items: list, page: int, page_size: int) -> list:
    start = (page - 1) * page_size
    if start >= len(items):
        return []
    return items[start : start + page_size]


def query_metadata(
    records: Iterable[MetadataRecord],
    flt: MetadataFilter,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> MetadataPage:
    page, page_size = parse_pagination(page, page_size)
    matched = sort_records(r for r in records if matches_filter(r, flt))
    return MetadataPage(
        items=paginate(matched, page, page_size),
        total=len(matched),
        page=page,
        page_size=page_size,
    )


def parse_metadata_filter(params: Mapping[str, str]) -> MetadataFilter:
    """
    Build a MetadataFilter from query-string parameters.

    Dates use ``YYYY-MM-DD`` in UTC; ``endTime`` covers the whole day.
    Values that fail to parse are logged and ignored.
    """
    flt = MetadataFilter(
        solana_version=params.get("solanaVersion", "") or "",
        status=params.get("status", "") or "",
        uploaded_by=params.get("uploadedBy", "") or "",
        node=params.get("node", "") or "",
        slot_range=params.get("slotRange", "") or "",
        search_term=params.get("searchTerm", "") or "",
    )

    for name, attr in (("minSlot", "min_slot"), ("maxSlot", "max_slot")):
        raw = params.get(name)
        if not raw:
            continue
        try:
            setattr(flt, attr, int(raw))
        except ValueError:
            log.warning("Failed to parse %s: %r", name, raw)

    start = _parse_date(params, "startTime")
    if start is not None:
        flt.start_time = start
    end = _parse_date(params, "endTime")
    if end is not None:
        flt.end_time = datetime.combine(end.date(), time.max, tzinfo=timezone.utc)

    log.debug("Parsed filter: %s", flt)
    return flt


def _parse_date(params: Mapping[str, str], name: str) -> Optional[datetime]:
    raw = params.get(name)
    if not raw:
        return None
    try:
        return datetime.strptime(raw, _DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        log.warning("Failed to parse %s: %r", name, raw)
        return None
