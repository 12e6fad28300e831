"""
Sidecar classification and permissive metadata parsing.

Sidecar files follow the naming convention ``snapshot-<slot>-<node>.json``;
the slot and node encoded in the name are authoritative for the facets and
are merged into whatever the document itself carries.

Parsing is two-tier:

1. A strict decode of the fixed-shape document (``solana_version``,
   ``status`` and ``uploaded_by``, each a string when present).
2. If that fails, a generic JSON object decode with type-checked lookups of
   the known fields. A missing or wrong-typed field is treated as absent.

If neither tier yields an object the raw bytes are handed back as an opaque
blob with a sniffed content type.
"""

from __future__ import annotations

import enum
import json
import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, NamedTuple, Optional

import magic
from pydantic import BaseModel, ConfigDict, ValidationError

from ..storage.base import is_archive_key

log = logging.getLogger(__name__)

SIDECAR_PATTERN = re.compile(r"snapshot-([0-9]+)-([A-Za-z0-9]+)\.json$")

SLOT_RANGE_WIDTH = 1_000_000
FIRST_SLOT_RANGE = "< 1M"

_MAX_SLOT = 2**63 - 1


class Classification(NamedTuple):
    is_archive: bool
    is_metadata_candidate: bool


def is_sidecar_key(key: str) -> bool:
    return SIDECAR_PATTERN.search(key) is not None


def classify(key: str) -> Classification:
    """Classify a bucket key as archive and/or sidecar by naming convention."""
    return Classification(
        is_archive=is_archive_key(key),
        is_metadata_candidate=is_sidecar_key(key),
    )


def extract_slot_and_node(key: str) -> tuple[int, str]:
    """
    Decode the slot and node encoded in a sidecar file name.

    Returns ``(0, "")`` when the key does not follow the naming convention or
    the slot does not fit a signed 64-bit integer.
    """
    match = SIDECAR_PATTERN.search(key)
    if match is None:
        return 0, ""
    slot = int(match.group(1))
    if slot > _MAX_SLOT:
        return 0, ""
    return slot, match.group(2)


def slot_range(slot: int) -> str:
    """Bucket *slot* into a 1M-wide label such as ``"2M-3M"``."""
    start = (slot // SLOT_RANGE_WIDTH) * SLOT_RANGE_WIDTH
    if start <= 0:
        return FIRST_SLOT_RANGE
    end = start + SLOT_RANGE_WIDTH
    return f"{start // SLOT_RANGE_WIDTH}M-{end // SLOT_RANGE_WIDTH}M"


class MetadataRecord(BaseModel):
    """Typed view of one sidecar file."""

    file_name: str
    file_size: int = 0
    solana_version: Optional[str] = None
    status: Optional[str] = None
    uploaded_by: Optional[str] = None
    slot: int = 0
    node: Optional[str] = None
    slot_range: Optional[str] = None
    hash: Optional[str] = None
    timestamp: Optional[datetime] = None

    def to_response(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        if self.node is None:
            data.pop("node")
        if self.slot_range is None:
            data.pop("slot_range")
        return data


class SidecarDocument(BaseModel):
    """Fixed shape of a well-formed sidecar document."""

    model_config = ConfigDict(strict=True, extra="ignore")

    solana_version: Optional[str] = None
    status: Optional[str] = None
    uploaded_by: Optional[str] = None


class ParseOutcome(str, enum.Enum):
    FULLY_TYPED = "fully_typed"
    PARTIALLY_RECOVERED = "partially_recovered"
    OPAQUE = "opaque"


@dataclass(frozen=True)
class RawBlob:
    """Content that could not be interpreted as a metadata record."""

    content: bytes
    content_type: str


@dataclass(frozen=True)
class ParseResult:
    outcome: ParseOutcome
    record: Optional[MetadataRecord] = None
    blob: Optional[RawBlob] = None

    @property
    def is_opaque(self) -> bool:
        return self.outcome is ParseOutcome.OPAQUE


def parse_sidecar(content: bytes, key: str, file_size: int | None = None) -> ParseResult:
    """Parse sidecar *content* stored under *key* into a tagged result."""
    if file_size is None:
        file_size = len(content)

    try:
        document = SidecarDocument.model_validate_json(content)
    except ValidationError as strict_err:
        log.debug("Strict decode of %s failed: %s", key, strict_err.errors(include_url=False))
    else:
        record = MetadataRecord(
            file_name=key,
            file_size=file_size,
            solana_version=document.solana_version or None,
            status=document.status or None,
            uploaded_by=document.uploaded_by or None,
        )
        _apply_file_name(record, key, keep_document_slot=False)
        return ParseResult(ParseOutcome.FULLY_TYPED, record=record)

    try:
        raw = json.loads(content)
    except ValueError as e:
        log.debug("Sidecar %s is not JSON: %s", key, e)
        raw = None

    if not isinstance(raw, dict):
        return ParseResult(
            ParseOutcome.OPAQUE,
            blob=RawBlob(content=content, content_type=sniff_content_type(content)),
        )

    record = MetadataRecord(
        file_name=key,
        file_size=file_size,
        solana_version=_string_field(raw, "solana_version"),
        status=_string_field(raw, "status"),
        uploaded_by=_string_field(raw, "uploaded_by"),
        slot=_slot_field(raw, "slot"),
        hash=_string_field(raw, "hash"),
        timestamp=_timestamp_field(raw, "timestamp"),
    )
    _apply_file_name(record, key, keep_document_slot=True)
    return ParseResult(ParseOutcome.PARTIALLY_RECOVERED, record=record)


def _apply_file_name(record: MetadataRecord, key: str, keep_document_slot: bool) -> None:
    if is_sidecar_key(key):
        slot, node = extract_slot_and_node(key)
        if not keep_document_slot or (record.slot == 0 and slot > 0):
            record.slot = slot
        if record.node is None and node:
            record.node = node
        record.slot_range = slot_range(record.slot)
    elif record.slot > 0:
        record.slot_range = slot_range(record.slot)


def _string_field(raw: dict, name: str) -> Optional[str]:
    value = raw.get(name)
    if isinstance(value, str) and value:
        return value
    return None


def _number_field(raw: dict, name: str) -> Optional[float]:
    value = raw.get(name)
    # bool is an int subclass but never a JSON number
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def _slot_field(raw: dict, name: str) -> int:
    value = _number_field(raw, name)
    if value is None or value < 0 or value > _MAX_SLOT:
        return 0
    return int(value)


def _timestamp_field(raw: dict, name: str) -> Optional[datetime]:
    value = _number_field(raw, name)
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


_SNIFF_BYTES = 2048


def sniff_content_type(data: bytes) -> str:
    """Guess a MIME type from the leading bytes of *data* using libmagic."""
    return magic.from_buffer(data[:_SNIFF_BYTES], mime=True)
