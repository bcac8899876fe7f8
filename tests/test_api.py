"""Unit tests for the Studio Web API client."""

import json
from unittest.mock import patch

import httpx
import pytest

from swsync.api import LOCK_KEY_HEADER, TENANT_ID_HEADER, StudioWebClient
from swsync.exceptions import (
    StudioWebAPIError,
    StudioWebAuthenticationError,
    StudioWebConfigError,
    StudioWebFileExistsError,
    StudioWebNotFoundError,
)
from swsync.models import (
    QualifiedFolder,
    ReferencedResourceRequest,
    ReferencedResourceStatus,
)
from swsync.sync.scanner import LocalFile

BASE = "https://cloud.example.com"
PROJECT = "/org-1/studio_/backend/api/Project/proj-1"


def make_client(handler, **kwargs) -> StudioWebClient:
    """Create a client whose HTTP traffic goes to ``handler``."""
    client = StudioWebClient(
        base_url=BASE,
        org_id="org-1",
        tenant_id="tenant-1",
        access_token="token-1",
        project_id="proj-1",
        retry_delay=0.0,
        **kwargs,
    )
    client._client = httpx.Client(
        transport=httpx.MockTransport(handler),
        headers={"Authorization": "Bearer token-1", TENANT_ID_HEADER: "tenant-1"},
    )
    return client


def json_response(status_code, data):
    return httpx.Response(status_code, json=data)


class TestStudioWebClientInit:
    """Tests for client construction."""

    def test_missing_configuration(self):
        with patch("swsync.api.config") as mock_config:
            mock_config.base_url = BASE
            mock_config.org_id = None
            mock_config.tenant_id = None
            mock_config.access_token = None
            mock_config.project_id = None
            with pytest.raises(StudioWebConfigError, match="UIPATH_ORG_ID") as exc_info:
                StudioWebClient()
        assert "UIPATH_PROJECT_ID" in str(exc_info.value)

    def test_build_url(self):
        client = make_client(lambda request: httpx.Response(200))
        assert client._build_url("/x") == f"{BASE}/org-1/x"
        assert client._build_url("/x", tenant_scoped=True) == f"{BASE}/org-1/tenant-1/x"

    def test_default_headers(self):
        client = StudioWebClient(
            base_url=BASE,
            org_id="org-1",
            tenant_id="tenant-1",
            access_token="token-1",
            project_id="proj-1",
        )
        http_client = client._get_client()
        assert http_client.headers["Authorization"] == "Bearer token-1"
        assert http_client.headers[TENANT_ID_HEADER] == "tenant-1"
        client.close()


class TestRequestPlumbing:
    """Tests for retries and error mapping."""

    @patch("swsync.api.time.sleep")
    def test_retries_server_errors(self, mock_sleep):
        responses = iter(
            [httpx.Response(503), httpx.Response(502), json_response(200, {"name": "app"})]
        )
        client = make_client(lambda request: next(responses))

        structure = client.fetch_structure()

        assert structure.name == "app"
        assert mock_sleep.call_count == 2

    @patch("swsync.api.time.sleep")
    def test_gives_up_after_max_retries(self, mock_sleep):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        client = make_client(handler, max_retries=2)

        with pytest.raises(StudioWebAPIError, match="status 500"):
            client.get_lock()
        assert len(calls) == 3

    @patch("swsync.api.time.sleep")
    def test_rate_limit_honours_retry_after(self, mock_sleep):
        responses = iter(
            [httpx.Response(429, headers={"Retry-After": "7"}), json_response(200, {})]
        )
        client = make_client(lambda request: next(responses))

        client.get_lock()

        mock_sleep.assert_called_once_with(7.0)

    def test_unauthorized_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401)

        client = make_client(handler)

        with pytest.raises(StudioWebAuthenticationError):
            client.get_lock()
        assert len(calls) == 1

    def test_html_response_is_auth_error(self):
        client = make_client(
            lambda request: httpx.Response(
                200, content=b"<html>login</html>", headers={"Content-Type": "text/html"}
            )
        )
        with pytest.raises(StudioWebAuthenticationError, match="HTML"):
            client.get_lock()

    def test_error_detail_included(self):
        client = make_client(lambda request: json_response(400, {"message": "bad parent"}))
        with pytest.raises(StudioWebAPIError, match="bad parent") as exc_info:
            client.get_lock()
        assert exc_info.value.status_code == 400


class TestProjectOperations:
    """Tests for structure and file operations."""

    def test_fetch_structure(self):
        data = {
            "name": "app",
            "files": [{"id": "1", "name": "README.md"}],
            "folders": [{"id": "2", "name": "source", "files": [], "folders": []}],
        }

        def handler(request):
            assert request.url.path == f"{PROJECT}/FileOperations/Structure"
            return json_response(200, data)

        structure = make_client(handler).fetch_structure()

        assert structure.files[0].name == "README.md"
        assert structure.folders[0].id == "2"

    def test_fetch_structure_404_is_empty(self):
        structure = make_client(lambda request: httpx.Response(404)).fetch_structure()
        assert structure.is_empty

    def test_create_folder_at_root(self):
        def handler(request):
            assert request.method == "POST"
            assert request.headers[LOCK_KEY_HEADER] == "lock-1"
            assert json.loads(request.content) == {"name": "dist"}
            return json_response(200, {"id": "f-1"})

        assert make_client(handler).create_folder_at_root("dist", "lock-1") == "f-1"

    def test_create_folder_conflict_returns_none(self):
        client = make_client(lambda request: httpx.Response(409))
        assert client.create_folder_at_root("dist", "lock-1") is None

    def test_move_folder(self):
        def handler(request):
            assert request.url.path == f"{PROJECT}/FileOperations/Folder/f-1/Move"
            assert json.loads(request.content) == {"parentId": "f-parent"}
            return httpx.Response(200)

        make_client(handler).move_folder("f-1", "f-parent", "lock-1")

    def test_create_file_conflict(self, tmp_path):
        local = LocalFile(relative_path="dist/a.txt", path=tmp_path / "a.txt", hash="h", content=b"a")
        client = make_client(lambda request: httpx.Response(409))

        with pytest.raises(StudioWebFileExistsError, match="source/dist/a.txt"):
            client.create_file("source/dist/a.txt", local, "f-dist", "source/dist", "lock-1")

    def test_create_file_sends_multipart(self, tmp_path):
        local = LocalFile(relative_path="dist/a.txt", path=tmp_path / "a.txt", hash="h", content=b"hello")

        def handler(request):
            body = request.content
            assert request.headers["Content-Type"].startswith("multipart/form-data")
            assert b'filename="a.txt"' in body
            assert b"hello" in body
            assert b"f-dist" in body
            return httpx.Response(200)

        make_client(handler).create_file("source/dist/a.txt", local, "f-dist", None, "lock-1")

    def test_download_file(self):
        def handler(request):
            assert request.url.path == f"{PROJECT}/FileOperations/File/file-1"
            return httpx.Response(200, content=b"raw bytes")

        assert make_client(handler).download_file("file-1") == b"raw bytes"

    def test_delete_item(self):
        def handler(request):
            assert request.method == "DELETE"
            assert request.url.path == f"{PROJECT}/FileOperations/Delete/item-1"
            return httpx.Response(204)

        make_client(handler).delete_item("item-1", "lock-1")

    def test_get_solution_id(self):
        client = make_client(lambda request: json_response(200, {"solutionId": "sol-1"}))
        assert client.get_solution_id() == "sol-1"


class TestLockOperations:
    """Tests for acquiring and releasing the project lock."""

    def test_existing_lock_returned(self):
        client = make_client(lambda request: json_response(200, {"projectLockKey": "k-1"}))
        assert client.acquire_lock().lock_key == "k-1"

    def test_acquire_puts_then_reads(self):
        requests = []
        responses = iter(
            [json_response(200, {}), httpx.Response(200), json_response(200, {"projectLockKey": "k-2"})]
        )

        def handler(request):
            requests.append(request)
            return next(responses)

        lock = make_client(handler).acquire_lock()

        assert lock.lock_key == "k-2"
        assert [r.method for r in requests] == ["GET", "PUT", "GET"]
        assert requests[1].url.path == f"{PROJECT}/Lock/dummy-uuid-Shared"
        assert requests[1].url.params["api-version"] == "2"

    def test_release_lock(self):
        def handler(request):
            assert request.method == "DELETE"
            assert request.url.path == f"{PROJECT}/Lock/k-1"
            return httpx.Response(200)

        make_client(handler).release_lock("k-1")


class TestResourceOperations:
    """Tests for catalog, connection and reference calls."""

    def test_find_resource_by_folder_path(self):
        items = {
            "value": [
                {
                    "entityKey": "e-1",
                    "name": "ApiKey",
                    "entityType": "Asset",
                    "entitySubType": "Text",
                    "folders": [{"key": "fk-1", "fullyQualifiedName": "Shared", "path": "Shared"}],
                }
            ]
        }

        def handler(request):
            assert request.url.path == "/org-1/tenant-1/resourcecatalog_/Entities/asset"
            assert request.url.params["name"] == "ApiKey"
            return json_response(200, items)

        resource = make_client(handler).find_resource_in_catalog("asset", "ApiKey", "Shared")

        assert resource.resource_key == "e-1"
        assert resource.folders[0].folder_key == "fk-1"

    def test_find_resource_not_found(self):
        client = make_client(lambda request: json_response(200, {"value": []}))
        with pytest.raises(StudioWebNotFoundError, match="at folder path 'Shared'"):
            client.find_resource_in_catalog("asset", "Missing", "Shared")

    def test_find_resource_unknown_type(self):
        client = make_client(lambda request: httpx.Response(200))
        with pytest.raises(ValueError):
            client.find_resource_in_catalog("spaceship", "x", "")

    def test_retrieve_connection(self):
        data = {"Key": "c-1", "Name": "Salesforce", "Folder": {"Key": "fk-1", "FullyQualifiedName": "Shared", "Path": "Shared"}}
        connection = make_client(lambda request: json_response(200, data)).retrieve_connection("c-1")
        assert connection.name == "Salesforce"
        assert connection.folder.folder_key == "fk-1"

    def test_retrieve_connection_not_found(self):
        client = make_client(lambda request: httpx.Response(404))
        with pytest.raises(StudioWebNotFoundError, match="Connection 'c-9' not found"):
            client.retrieve_connection("c-9")

    def test_create_referenced_resource(self):
        def handler(request):
            assert request.headers[LOCK_KEY_HEADER] == "lock-1-Shared"
            assert request.url.params["forceUpdate"] == "true"
            body = json.loads(request.content)
            assert body["kind"] == "asset"
            assert "type" not in body
            return json_response(200, {"status": "Created", "saved": True})

        request = ReferencedResourceRequest(
            key="e-1",
            kind="asset",
            type=None,
            folder=QualifiedFolder(folder_key="fk-1", fully_qualified_name="Shared", path="Shared"),
        )

        response = make_client(handler).create_referenced_resource("sol-1", request, "lock-1")

        assert response.status == ReferencedResourceStatus.ADDED
        assert response.saved
