"""Application service consumed by the HTTP and WebSocket layer."""

import json
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional, Union

from .cache.base import CacheBackend
from .config import AppConfig
from .exceptions import ArchiveDownloadForbiddenError
from .indexing.facets import FacetIndexer, FacetStore, FilterOptions
from .indexing.parser import (
    MetadataRecord,
    RawBlob,
    is_sidecar_key,
    parse_sidecar,
    sniff_content_type,
)
from .indexing.query import DEFAULT_PAGE_SIZE, MetadataFilter, MetadataPage, query_metadata
from .realtime.hub import Hub
from .realtime.transport import PushTransport
from .storage.base import BucketObject, ObjectStorageClient, ObjectStream, is_archive_key, is_metadata_key
from .storage.exceptions import StorageError, StorageNotFoundError

log = logging.getLogger(__name__)


class BucketBrowserService:
    """
    Facade over storage, cache, facet indexing and the push hub.

    Indexing passes run on a single background worker, so at most one pass
    touches the bucket at a time; further requests queue behind it.
    """

    def __init__(
        self,
        storage: ObjectStorageClient,
        cache: CacheBackend,
        config: Optional[AppConfig] = None,
        hub: Optional[Hub] = None,
    ):
        self._config = config or AppConfig()
        self._storage = storage
        self._cache = cache
        self._prefix = self._config.s3.prefix
        self._workers = self._config.indexing.workers

        self._store = FacetStore()
        self._indexer = FacetIndexer(
            storage,
            cache,
            self._store,
            workers=self._config.indexing.workers,
            cache_key=self._config.indexing.cache_key,
            cache_ttl_seconds=self._config.indexing.cache_ttl_seconds,
            prefix=self._prefix,
        )
        realtime = self._config.realtime
        self._hub = hub or Hub(
            storage,
            poll_interval_seconds=realtime.poll_interval_seconds,
            client_queue_size=realtime.client_queue_size,
            pong_wait_seconds=realtime.pong_wait_seconds,
            write_wait_seconds=realtime.write_wait_seconds,
            prefix=self._prefix,
        )

        self._cancel = threading.Event()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="facet-indexer")
        self._closed = False
        self._submit_lock = threading.Lock()
        self._queued: Optional[Future] = None
        self.log_identifier = "[BucketBrowserService]"

    @property
    def hub(self) -> Hub:
        return self._hub

    @property
    def cache_name(self) -> str:
        return self._cache.name

    @property
    def facet_store(self) -> FacetStore:
        return self._store

    def start(self) -> Optional[Future]:
        """Kick off the initial indexing pass."""
        return self.trigger_indexing()

    def close(self) -> None:
        with self._submit_lock:
            if self._closed:
                return
            self._closed = True
        self._cancel.set()
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._cache.close()
        log.info("%s Closed", self.log_identifier)

    def trigger_indexing(self) -> Optional[Future]:
        """
        Queue an indexing pass.

        At most one pass waits behind the running one. While a queued pass has
        not started yet, further requests return that pass instead of adding
        another.
        """
        with self._submit_lock:
            if self._closed:
                log.debug("%s Ignoring indexing request after close", self.log_identifier)
                return None
            queued = self._queued
            if queued is not None and not queued.running() and not queued.done():
                log.debug("%s Indexing pass already queued", self.log_identifier)
                return queued
            self._queued = self._executor.submit(self._run_indexing)
            return self._queued

    def _run_indexing(self) -> Optional[FilterOptions]:
        try:
            return self._indexer.index(self._cancel)
        except StorageError as e:
            log.error("%s Metadata indexing failed: %s", self.log_identifier, e)
        except Exception as e:
            log.error(
                "%s Unexpected error during metadata indexing: %s",
                self.log_identifier,
                e,
                exc_info=True,
            )
        return None

    def reindex(self) -> Optional[Future]:
        """Drop the cached facets and start a fresh pass in the background."""
        log.info("%s Manual reindex triggered", self.log_identifier)
        self._indexer.invalidate()
        return self.trigger_indexing()

    def list_objects(self) -> list[BucketObject]:
        return self._storage.list_objects(self._prefix)

    def open_object(self, key: str) -> ObjectStream:
        if is_archive_key(key):
            raise ArchiveDownloadForbiddenError(key)
        return self._storage.open_object(key)

    def get_facets(self) -> FilterOptions:
        """
        Return the current facets.

        While no versions or statuses are known, the cache is consulted and,
        failing that, a background pass is started and the current snapshot
        is returned as-is.
        """
        options = self._store.get()
        if options.has_document_values():
            return options

        cached = self._indexer.load_cached()
        if cached is not None and cached.has_document_values():
            log.info("%s Using filter options from cache", self.log_identifier)
            self._store.swap(cached)
            return cached

        log.info("%s No filter options available, triggering indexing", self.log_identifier)
        self.trigger_indexing()
        return options

    def load_records(self) -> list[MetadataRecord]:
        """Fetch and parse every sidecar. Files that cannot be read or parsed are skipped."""
        sidecars = [obj for obj in self.list_objects() if is_sidecar_key(obj.key)]
        log.info("%s Found %d metadata files", self.log_identifier, len(sidecars))
        if not sidecars:
            return []

        with ThreadPoolExecutor(
            max_workers=min(self._workers, len(sidecars)),
            thread_name_prefix="metadata-fetch",
        ) as pool:
            results = list(pool.map(self._load_record, sidecars))
        return [record for record in results if record is not None]

    def _load_record(self, obj: BucketObject) -> Optional[MetadataRecord]:
        try:
            stored = self._storage.get_object(obj.key)
        except StorageError as e:
            log.warning("%s Error getting object %s: %s", self.log_identifier, obj.key, e)
            return None
        result = parse_sidecar(stored.content, obj.key, stored.content_length)
        if result.is_opaque:
            log.warning("%s Skipping unparseable metadata file %s", self.log_identifier, obj.key)
            return None
        return result.record

    def query_metadata(
        self,
        flt: MetadataFilter,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> MetadataPage:
        result = query_metadata(self.load_records(), flt, page, page_size)
        log.info(
            "%s Returning %d of %d matching records (page %d)",
            self.log_identifier,
            len(result.items),
            result.total,
            result.page,
        )
        return result

    def get_metadata_record(self, key: str) -> Union[MetadataRecord, RawBlob]:
        """
        Fetch one object and interpret it as a metadata record.

        JSON keys are parsed; anything that does not decode to a JSON object,
        and any non-JSON key, comes back as a RawBlob with a sniffed type.

        Raises:
            ArchiveDownloadForbiddenError: If the key names a snapshot archive.
            StorageNotFoundError: If the key does not exist.
        """
        if is_archive_key(key):
            raise ArchiveDownloadForbiddenError(key)
        stored = self._storage.get_object(key)
        if not is_metadata_key(key):
            log.debug("%s %s is not a JSON file, returning raw content", self.log_identifier, key)
            return RawBlob(content=stored.content, content_type=sniff_content_type(stored.content))

        result = parse_sidecar(stored.content, key, stored.content_length)
        if result.is_opaque:
            log.info("%s Could not parse %s as JSON, returning raw content", self.log_identifier, key)
            return result.blob
        return result.record

    def examine_first_sidecar(self) -> dict:
        """Log the content of the first sidecar in the bucket and report which file it was."""
        sidecar = next(
            (obj.key for obj in self.list_objects() if obj.is_metadata and is_sidecar_key(obj.key)),
            None,
        )
        if sidecar is None:
            raise StorageNotFoundError("No metadata files found")

        stored = self._storage.get_object(sidecar)
        text = stored.content.decode("utf-8", errors="replace")
        log.info("%s Content of metadata file %s: %s", self.log_identifier, sidecar, text)
        try:
            parsed = json.loads(stored.content)
        except ValueError as e:
            log.info("%s Failed to parse metadata file as JSON: %s", self.log_identifier, e)
        else:
            log.info("%s Parsed metadata file: %r", self.log_identifier, parsed)

        return {"message": "File examined, check logs", "file": sidecar}

    async def register_push_client(self, transport: PushTransport) -> None:
        await self._hub.serve(transport)
