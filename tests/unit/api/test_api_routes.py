"""Route tests for the REST and WebSocket API."""

import json

import pytest
from fastapi.testclient import TestClient

from bucket_browser.api import create_app
from bucket_browser.config import AppConfig
from bucket_browser.indexing.facets import FilterOptions
from bucket_browser.service import BucketBrowserService
from bucket_browser.storage.exceptions import StorageConnectionError


@pytest.fixture
def service(storage, memory_cache):
    svc = BucketBrowserService(storage, memory_cache, AppConfig())
    yield svc
    svc.close()


@pytest.fixture
def client(service) -> TestClient:
    return TestClient(create_app(service))


class TestHealth:
    def test_reports_cache_backend(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"ok": True, "cache": "redis"}


class TestOpenApi:
    def test_error_responses_are_documented(self, client):
        schema = client.get("/openapi.json").json()

        responses = schema["paths"]["/api/metadata/{key}"]["get"]["responses"]

        assert set(responses) >= {"200", "403", "404", "500"}
        assert responses["403"]["content"]["application/json"]["schema"] == {"$ref": "#/components/schemas/ErrorResponse"}
        assert "ErrorResponse" in schema["components"]["schemas"]


class TestFiles:
    def test_lists_objects_in_camel_case(self, client, storage):
        storage.put("snapshot-1-n.tar.gz", b"archive", "application/gzip")
        storage.put("snapshot-1-n.json", {"status": "ok"})

        response = client.get("/api/files")

        assert response.status_code == 200
        body = response.json()
        assert [item["key"] for item in body] == ["snapshot-1-n.json", "snapshot-1-n.tar.gz"]
        assert body[1]["isArchive"] is True
        assert body[0]["isMetadata"] is True
        assert set(body[0]) == {"key", "size", "lastModified", "etag", "isArchive", "isMetadata"}

    def test_streams_nested_key(self, client, storage):
        storage.put("docs/notes.txt", "hello world", "text/plain")

        response = client.get("/api/files/docs/notes.txt")

        assert response.status_code == 200
        assert response.content == b"hello world"
        assert response.headers["content-type"].startswith("text/plain")
        assert response.headers["content-length"] == "11"

    def test_archive_download_is_forbidden(self, client, storage):
        storage.put("snapshot-1-n.tar.gz", b"archive", "application/gzip")

        response = client.get("/api/files/snapshot-1-n.tar.gz")

        assert response.status_code == 403
        assert response.json() == {"message": "Downloading .tar.gz files is not allowed"}

    def test_missing_file(self, client):
        response = client.get("/api/files/nope.txt")
        assert response.status_code == 404
        assert response.json() == {"message": "Object not found: nope.txt"}

    def test_listing_failure(self, client, storage):
        storage.list_error = StorageConnectionError("endpoint unreachable")
        response = client.get("/api/files")
        assert response.status_code == 500
        assert "endpoint unreachable" in response.json()["message"]


class TestMetadata:
    def test_options_in_camel_case(self, client, service):
        service.facet_store.swap(
            FilterOptions(
                solana_versions=("1.9.0", "1.10.0"),
                statuses=("ok",),
                uploaded_by=("ops",),
                nodes=("n",),
                slot_ranges=("< 1M",),
            )
        )

        response = client.get("/api/metadata/options")

        assert response.status_code == 200
        assert response.json() == {
            "solanaVersions": ["1.9.0", "1.10.0"],
            "statuses": ["ok"],
            "uploadedBy": ["ops"],
            "nodes": ["n"],
            "slotRanges": ["< 1M"],
        }

    def test_query_with_filter_and_pagination(self, client, storage):
        for slot in (1000000, 2000000, 3000000):
            storage.put(f"snapshot-{slot}-n{slot}.json", {"status": "ok"})
        storage.put("snapshot-4000000-x.json", {"status": "failed"})

        response = client.get("/api/metadata", params={"status": "ok", "page": "2", "page_size": "2"})

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 3
        assert body["page"] == 2
        assert body["page_size"] == 2
        assert [item["slot"] for item in body["items"]] == [1000000]
        assert body["items"][0]["slot_range"] == "1M-2M"

    def test_invalid_filter_values_are_ignored(self, client, storage):
        storage.put("snapshot-1-n.json", {"status": "ok"})
        response = client.get("/api/metadata", params={"minSlot": "abc", "page": "-1"})
        assert response.status_code == 200
        assert response.json()["total"] == 1
        assert response.json()["page"] == 1

    def test_single_record(self, client, storage):
        storage.put("snapshot-5-node7.json", {"solana_version": "1.18.0", "status": "ok"})

        response = client.get("/api/metadata/snapshot-5-node7.json")

        assert response.status_code == 200
        body = response.json()
        assert body["file_name"] == "snapshot-5-node7.json"
        assert body["solana_version"] == "1.18.0"
        assert body["node"] == "node7"

    def test_record_without_node_omits_field(self, client, storage):
        storage.put("plain.json", {"status": "ok"})
        body = client.get("/api/metadata/plain.json").json()
        assert "node" not in body
        assert "slot_range" not in body

    def test_raw_fallback(self, client, storage):
        storage.put("readme.txt", "just text", "text/plain")
        response = client.get("/api/metadata/readme.txt")
        assert response.status_code == 200
        assert response.content == b"just text"
        assert response.headers["content-type"].startswith("text/plain")

    def test_missing_record(self, client):
        response = client.get("/api/metadata/absent.json")
        assert response.status_code == 404

    def test_archive_record_is_forbidden(self, client, storage):
        storage.put("snapshot-1-n.tar.gz", b"archive", "application/gzip")

        response = client.get("/api/metadata/snapshot-1-n.tar.gz")

        assert response.status_code == 403
        assert response.json() == {"message": "Downloading .tar.gz files is not allowed"}
        assert storage.get_calls == []


class TestDebug:
    def test_reindex(self, client, service):
        response = client.get("/api/debug/reindex")
        assert response.status_code == 200
        assert response.json() == {"message": "Reindexing started"}

    def test_examine_file(self, client, storage):
        storage.put("snapshot-1-a.json", {"status": "ok"})
        response = client.get("/api/debug/examine-file")
        assert response.json() == {"message": "File examined, check logs", "file": "snapshot-1-a.json"}

    def test_examine_file_without_sidecars(self, client):
        response = client.get("/api/debug/examine-file")
        assert response.status_code == 404
        assert response.json() == {"message": "No metadata files found"}


class TestPushChannel:
    def test_client_receives_listing(self, storage, memory_cache):
        storage.put("snapshot-1-n.json", {"status": "ok"})
        config = AppConfig(realtime={"poll_interval_seconds": 0.05})
        service = BucketBrowserService(storage, memory_cache, config)
        app = create_app(service, config)

        with TestClient(app) as client:
            with client.websocket_connect("/api/ws") as websocket:
                payload = json.loads(websocket.receive_text())

        assert [item["key"] for item in payload] == ["snapshot-1-n.json"]


class TestStaticFiles:
    def test_mounts_frontend(self, service, tmp_path):
        (tmp_path / "index.html").write_text("<html>browser</html>")
        config = AppConfig(server={"static_dir": str(tmp_path)})
        client = TestClient(create_app(service, config))

        response = client.get("/")

        assert response.status_code == 200
        assert "browser" in response.text
        assert client.get("/api/health").status_code == 200
