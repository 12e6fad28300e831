"""
Builds the filter facets (distinct versions, statuses, uploaders, nodes and
slot ranges) from every sidecar in the bucket.
"""

from __future__ import annotations

import functools
import logging
import re
import threading
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Iterable, Optional

from pydantic import BaseModel, Field, ValidationError

from ..cache.base import CacheBackend, CacheError
from ..storage.base import BucketObject, ObjectStorageClient
from ..storage.exceptions import StorageNotFoundError
from .parser import (
    FIRST_SLOT_RANGE,
    MetadataRecord,
    extract_slot_and_node,
    is_sidecar_key,
    parse_sidecar,
    slot_range,
)

log = logging.getLogger(__name__)

DEFAULT_WORKERS = 10
DEFAULT_CACHE_KEY = "metadata:options"
DEFAULT_CACHE_TTL_SECONDS = 300

_UNKNOWN = "unknown"
_INTEGER = re.compile(r"^[+-]?[0-9]+$")
_SLOT_RANGE_PREFIX = re.compile(r"^([0-9]+)M")


class FilterOptions(BaseModel):
    """One immutable facet snapshot."""

    model_config = {"populate_by_name": True, "frozen": True}

    solana_versions: tuple[str, ...] = Field(default=(), alias="solanaVersions")
    statuses: tuple[str, ...] = Field(default=(), alias="statuses")
    uploaded_by: tuple[str, ...] = Field(default=(), alias="uploadedBy")
    nodes: tuple[str, ...] = Field(default=(), alias="nodes")
    slot_ranges: tuple[str, ...] = Field(default=(), alias="slotRanges")

    def is_empty(self) -> bool:
        return not (
            self.solana_versions
            or self.statuses
            or self.uploaded_by
            or self.nodes
            or self.slot_ranges
        )

    def has_document_values(self) -> bool:
        """True once at least one version or status has been indexed."""
        return bool(self.solana_versions or self.statuses)

    def to_json_bytes(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_json_bytes(cls, data: bytes) -> "FilterOptions":
        return cls.model_validate_json(data)


def _parse_int(part: str) -> Optional[int]:
    if _INTEGER.match(part):
        return int(part)
    return None


def compare_versions(a: str, b: str) -> int:
    """
    Compare dotted versions by major, minor then patch number.

    Components that are not integers are skipped; if no numeric component
    decides the order the strings are compared lexicographically.
    """
    parts_a = a.split(".")
    parts_b = b.split(".")

    for index in (0, 1):
        if len(parts_a) > index and len(parts_b) > index:
            num_a = _parse_int(parts_a[index])
            num_b = _parse_int(parts_b[index])
            if num_a is not None and num_b is not None and num_a != num_b:
                return -1 if num_a < num_b else 1

    if len(parts_a) > 2 and len(parts_b) > 2:
        num_a = _parse_int(parts_a[2])
        num_b = _parse_int(parts_b[2])
        if num_a is not None and num_b is not None:
            return (num_a > num_b) - (num_a < num_b)

    return (a > b) - (a < b)


def sort_versions(versions: Iterable[str]) -> list[str]:
    return sorted(versions, key=functools.cmp_to_key(compare_versions))


def _slot_range_key(label: str) -> tuple[int, int, str]:
    if label == FIRST_SLOT_RANGE:
        return (0, 0, label)
    match = _SLOT_RANGE_PREFIX.match(label)
    start = int(match.group(1)) if match else 0
    return (1, start, label)


def sort_slot_ranges(ranges: Iterable[str]) -> list[str]:
    """Sort slot range labels with ``"< 1M"`` first, then by leading million."""
    return sorted(ranges, key=_slot_range_key)


class FacetStore:
    """
    Holds the current facet snapshot.

    Writers build a complete FilterOptions off to the side and swap it in; the
    snapshot itself is never mutated, so readers always see a whole pass.
    """

    def __init__(self, initial: FilterOptions | None = None):
        self._lock = threading.Lock()
        self._snapshot = initial or FilterOptions()
        self._version = 0

    def get(self) -> FilterOptions:
        with self._lock:
            return self._snapshot

    @property
    def version(self) -> int:
        """Number of swaps so far. Inspection helper for tests and diagnostics."""
        with self._lock:
            return self._version

    def swap(self, options: FilterOptions) -> int:
        with self._lock:
            self._snapshot = options
            self._version += 1
            return self._version


class _FacetAccumulator:
    """Per-pass distinct value sets shared by the worker pool."""

    def __init__(self):
        self._lock = threading.Lock()
        self.versions: set[str] = set()
        self.statuses: set[str] = set()
        self.uploaders: set[str] = set()
        self.nodes: set[str] = set()
        self.slot_ranges: set[str] = set()

    def add_file_name(self, node: str, slot: int) -> None:
        with self._lock:
            self.nodes.add(node)
            self.slot_ranges.add(slot_range(slot))

    def add_record(self, record: MetadataRecord) -> None:
        with self._lock:
            for value, target in (
                (record.solana_version, self.versions),
                (record.status, self.statuses),
                (record.uploaded_by, self.uploaders),
            ):
                if value and value != _UNKNOWN:
                    target.add(value)

    def to_options(self) -> FilterOptions:
        with self._lock:
            return FilterOptions(
                solana_versions=tuple(sort_versions(self.versions)),
                statuses=tuple(sorted(self.statuses)),
                uploaded_by=tuple(sorted(self.uploaders)),
                nodes=tuple(sorted(self.nodes)),
                slot_ranges=tuple(sort_slot_ranges(self.slot_ranges)),
            )


class FacetIndexer:
    """
    Computes facet snapshots and persists them to the cache.

    A pass adopts the cached snapshot when there is one. Otherwise it lists
    the bucket and fetches every sidecar on a bounded worker pool, then swaps
    the sorted result into the store. A listing or transport failure aborts
    the pass and leaves the previous snapshot in place. Missing or
    unparseable sidecars are skipped.
    """

    def __init__(
        self,
        storage: ObjectStorageClient,
        cache: CacheBackend,
        store: FacetStore,
        workers: int = DEFAULT_WORKERS,
        cache_key: str = DEFAULT_CACHE_KEY,
        cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        prefix: str = "",
    ):
        self._storage = storage
        self._cache = cache
        self._store = store
        self._workers = workers
        self._cache_key = cache_key
        self._cache_ttl_seconds = cache_ttl_seconds
        self._prefix = prefix
        self.log_identifier = "[FacetIndexer]"

    @property
    def store(self) -> FacetStore:
        return self._store

    def index(self, cancel_event: threading.Event | None = None) -> Optional[FilterOptions]:
        """
        Run one indexing pass.

        Returns:
            The adopted snapshot, or None if the pass was cancelled.

        Raises:
            StorageError: If listing or fetching fails; the store is left untouched.
        """
        cancel_event = cancel_event or threading.Event()
        log.info("%s Starting metadata indexing...", self.log_identifier)

        cached = self.load_cached()
        if cached is not None:
            self._store.swap(cached)
            log.info("%s Loaded filter options from cache", self.log_identifier)
            return cached

        objects = self._storage.list_objects(self._prefix)
        log.info("%s Found %d total objects in bucket", self.log_identifier, len(objects))

        sidecars = [obj for obj in objects if obj.is_metadata and is_sidecar_key(obj.key)]
        log.info(
            "%s Found %d snapshot metadata files to index",
            self.log_identifier,
            len(sidecars),
        )

        if not sidecars:
            log.warning(
                "%s No metadata files found to index. Check the bucket and file naming patterns.",
                self.log_identifier,
            )
            options = FilterOptions()
            self._store.swap(options)
            self.persist(options)
            return options

        accumulator = _FacetAccumulator()
        abort = threading.Event()
        with ThreadPoolExecutor(
            max_workers=min(self._workers, len(sidecars)),
            thread_name_prefix="facet-worker",
        ) as pool:
            futures = [
                pool.submit(self._index_one, obj, accumulator, cancel_event, abort)
                for obj in sidecars
            ]
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for future in pending:
                future.cancel()
            failures = [f for f in done if not f.cancelled() and f.exception() is not None]
            if failures:
                abort.set()

        if failures:
            error = failures[0].exception()
            log.error(
                "%s Indexing pass aborted, keeping previous filter options: %s",
                self.log_identifier,
                error,
            )
            raise error

        if cancel_event.is_set():
            log.info("%s Indexing pass cancelled before completion", self.log_identifier)
            return None

        options = accumulator.to_options()
        snapshot = self._store.swap(options)
        self.persist(options)
        if options.is_empty():
            log.warning(
                "%s Indexed %d metadata files but found no filter values", self.log_identifier, len(sidecars)
            )
        log.info(
            "%s Metadata indexing complete (snapshot %d). Found %d versions, %d statuses, %d uploaders, %d nodes, %d slot ranges",
            self.log_identifier,
            snapshot,
            len(options.solana_versions),
            len(options.statuses),
            len(options.uploaded_by),
            len(options.nodes),
            len(options.slot_ranges),
        )
        return options

    def _index_one(
        self,
        obj: BucketObject,
        accumulator: _FacetAccumulator,
        cancel_event: threading.Event,
        abort: threading.Event,
    ) -> None:
        if cancel_event.is_set() or abort.is_set():
            return

        slot, node = extract_slot_and_node(obj.key)
        if slot > 0 and node:
            accumulator.add_file_name(node, slot)

        try:
            stored = self._storage.get_object(obj.key)
        except StorageNotFoundError:
            log.warning(
                "%s Metadata file %s disappeared before it could be read, skipping",
                self.log_identifier,
                obj.key,
            )
            return

        result = parse_sidecar(stored.content, obj.key, stored.content_length)
        if result.is_opaque:
            log.warning(
                "%s Failed to parse metadata file %s, skipping",
                self.log_identifier,
                obj.key,
            )
            return
        accumulator.add_record(result.record)

    def load_cached(self) -> Optional[FilterOptions]:
        """Return the cached snapshot, or None on a miss or cache failure."""
        try:
            raw = self._cache.get(self._cache_key)
        except CacheError as e:
            log.warning("%s Cache read failed, treating as miss: %s", self.log_identifier, e)
            return None
        if raw is None:
            log.debug("%s Cache miss for %s", self.log_identifier, self._cache_key)
            return None
        try:
            return FilterOptions.from_json_bytes(raw)
        except ValidationError as e:
            log.warning(
                "%s Ignoring malformed cached filter options: %s",
                self.log_identifier,
                e.errors(include_url=False),
            )
            return None

    def persist(self, options: FilterOptions) -> None:
        try:
            self._cache.set(self._cache_key, options.to_json_bytes(), self._cache_ttl_seconds)
        except CacheError as e:
            log.warning("%s Failed to cache filter options: %s", self.log_identifier, e)

    def invalidate(self) -> None:
        try:
            self._cache.delete(self._cache_key)
        except CacheError as e:
            log.warning("%s Failed to delete cached filter options: %s", self.log_identifier, e)
