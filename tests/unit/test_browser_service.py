"""Tests for BucketBrowserService."""

import gzip
import json
import threading

import pytest

from bucket_browser.cache.base import NullCache
from bucket_browser.config import AppConfig
from bucket_browser.exceptions import ArchiveDownloadForbiddenError
from bucket_browser.indexing.facets import FilterOptions
from bucket_browser.indexing.parser import MetadataRecord, RawBlob
from bucket_browser.indexing.query import MetadataFilter
from bucket_browser.service import BucketBrowserService
from bucket_browser.storage.exceptions import (
    StorageConnectionError,
    StorageNotFoundError,
)


@pytest.fixture
def service(storage, memory_cache):
    svc = BucketBrowserService(storage, memory_cache, AppConfig())
    yield svc
    svc.close()


class TestObjects:
    def test_archive_download_is_forbidden(self, service, storage):
        storage.put("snapshot-1-n.tar.gz", b"archive", "application/gzip")
        with pytest.raises(ArchiveDownloadForbiddenError):
            service.open_object("snapshot-1-n.tar.gz")
        assert storage.get_calls == []

    def test_open_object_streams(self, service, storage):
        storage.put("notes.txt", "hello world", "text/plain")
        stream = service.open_object("notes.txt")
        assert b"".join(stream.iter_chunks()) == b"hello world"


class TestIndexing:
    def test_start_runs_initial_pass(self, service, storage):
        storage.put("snapshot-1000000-n.json", {"solana_version": "1.0.0", "status": "ok"})
        service.start().result(timeout=5)
        assert service.facet_store.get().statuses == ("ok",)

    def test_reindex_invalidates_cache_first(self, service, storage, memory_cache):
        memory_cache.set("metadata:options", FilterOptions(statuses=("stale",)).to_json_bytes(), 300)
        storage.put("snapshot-1-n.json", {"status": "fresh"})

        result = service.reindex().result(timeout=5)

        assert result.statuses == ("fresh",)
        assert storage.list_calls == 1

    def test_failed_pass_is_logged_not_raised(self, service, storage):
        storage.list_error = StorageConnectionError("down")
        assert service.trigger_indexing().result(timeout=5) is None

    def test_requests_during_a_pass_queue_one_more_pass(self, storage):
        storage.put("snapshot-1-n.json", {})
        entered = threading.Event()
        release = threading.Event()
        get_object = storage.get_object

        def slow_get_object(key):
            entered.set()
            release.wait(timeout=5)
            return get_object(key)

        storage.get_object = slow_get_object
        svc = BucketBrowserService(storage, NullCache())
        try:
            first = svc.start()
            assert entered.wait(timeout=5)

            for _ in range(50):
                assert svc.get_facets().is_empty()
            queued = svc.trigger_indexing()

            release.set()
            first.result(timeout=5)
            queued.result(timeout=5)
        finally:
            svc.close()

        assert queued is not first
        assert storage.list_calls == 2

    def test_no_indexing_after_close(self, storage):
        svc = BucketBrowserService(storage, NullCache())
        svc.close()
        assert svc.trigger_indexing() is None


class TestFacets:
    def test_returns_populated_snapshot(self, service, storage):
        service.facet_store.swap(FilterOptions(statuses=("ok",)))
        assert service.get_facets().statuses == ("ok",)
        assert storage.list_calls == 0

    def test_empty_snapshot_is_refreshed_from_cache(self, service, storage, memory_cache):
        cached = FilterOptions(solana_versions=("1.0.0",))
        memory_cache.set("metadata:options", cached.to_json_bytes(), 300)

        assert service.get_facets() == cached
        assert service.facet_store.get() == cached
        assert storage.list_calls == 0

    def test_empty_everywhere_triggers_background_pass(self, storage):
        svc = BucketBrowserService(storage, NullCache())
        try:
            storage.put("snapshot-1-n.json", {"status": "ok"})
            assert svc.get_facets().is_empty()
            svc.trigger_indexing().result(timeout=5)
            assert svc.facet_store.get().statuses == ("ok",)
        finally:
            svc.close()


class TestMetadata:
    def test_query_skips_unreadable_and_opaque_files(self, service, storage):
        storage.put("snapshot-3000000-a.json", {"status": "ok", "solana_version": "1.0.0"})
        storage.put("snapshot-2000000-b.json", "garbage")
        storage.put("snapshot-1000000-c.json", {"status": "ok"})
        storage.get_errors["snapshot-1000000-c.json"] = StorageConnectionError("reset")
        storage.put("unrelated.json", {"status": "ok"})

        page = service.query_metadata(MetadataFilter(status="ok"), 1, 20)

        assert page.total == 1
        assert page.items[0].file_name == "snapshot-3000000-a.json"
        assert "unrelated.json" not in storage.get_calls

    def test_query_listing_failure_propagates(self, service, storage):
        storage.list_error = StorageConnectionError("down")
        with pytest.raises(StorageConnectionError):
            service.query_metadata(MetadataFilter())

    def test_record_for_json_key(self, service, storage):
        storage.put("snapshot-5-n.json", {"status": "ok"})
        record = service.get_metadata_record("snapshot-5-n.json")
        assert isinstance(record, MetadataRecord)
        assert record.node == "n"

    def test_unparseable_json_key_returns_blob(self, service, storage):
        storage.put("snapshot-5-n.json", gzip.compress(b"not a sidecar"))
        blob = service.get_metadata_record("snapshot-5-n.json")
        assert isinstance(blob, RawBlob)
        assert blob.content_type in ("application/gzip", "application/x-gzip")

    def test_non_json_key_returns_raw_content(self, service, storage):
        storage.put("readme.txt", "plain text", "text/plain")
        blob = service.get_metadata_record("readme.txt")
        assert isinstance(blob, RawBlob)
        assert blob.content == b"plain text"
        assert blob.content_type == "text/plain"

    def test_archive_record_is_forbidden(self, service, storage):
        storage.put("snapshot-1-n.tar.gz", gzip.compress(b"ledger"), "application/gzip")
        with pytest.raises(ArchiveDownloadForbiddenError):
            service.get_metadata_record("snapshot-1-n.tar.gz")
        assert storage.get_calls == []

    def test_missing_record(self, service):
        with pytest.raises(StorageNotFoundError):
            service.get_metadata_record("absent.json")


class TestExamine:
    def test_reports_first_sidecar(self, service, storage):
        storage.put("readme.json", {})
        storage.put("snapshot-2-b.json", {"status": "ok"})
        storage.put("snapshot-1-a.json", json.dumps({"status": "ok"}))
        assert service.examine_first_sidecar() == {
            "message": "File examined, check logs",
            "file": "snapshot-1-a.json",
        }

    def test_no_sidecars(self, service, storage):
        storage.put("readme.json", {})
        with pytest.raises(StorageNotFoundError):
            service.examine_first_sidecar()
