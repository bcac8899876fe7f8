"""API client for UiPath Studio Web projects."""

from __future__ import annotations

import logging
import random
import time
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from .config import config
from .exceptions import (
    StudioWebAPIError,
    StudioWebAuthenticationError,
    StudioWebConfigError,
    StudioWebConflictError,
    StudioWebFileExistsError,
    StudioWebInvalidResponseError,
    StudioWebNetworkError,
    StudioWebNotFoundError,
    StudioWebPermissionError,
    StudioWebRateLimitError,
)
from .models import (
    Connection,
    LockInfo,
    ProjectStructure,
    ReferencedResourceRequest,
    ReferencedResourceResponse,
    Resource,
)
from .utils import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY, DEFAULT_TIMEOUT

if TYPE_CHECKING:
    from .sync.scanner import LocalFile

logger = logging.getLogger(__name__)

# =============================================================================
# Endpoints and headers
# =============================================================================

_PROJECT = "/studio_/backend/api/Project/{project_id}"

ENDPOINTS: dict[str, str] = {
    "project": _PROJECT,
    "structure": _PROJECT + "/FileOperations/Structure",
    "create_folder": _PROJECT + "/FileOperations/Folder",
    "move_folder": _PROJECT + "/FileOperations/Folder/{folder_id}/Move",
    "create_file": _PROJECT + "/FileOperations/File",
    "file": _PROJECT + "/FileOperations/File/{file_id}",
    "delete_item": _PROJECT + "/FileOperations/Delete/{item_id}",
    "lock": _PROJECT + "/Lock",
    "referenced_resource": (
        "/studio_/backend/api/resourcebuilder/solutions/{solution_id}"
        "/resources/reference"
    ),
    "catalog_entities": "/resourcecatalog_/Entities/{resource_type}",
    "connection": "/connections_/api/v1/Connections/{connection_key}",
}

LOCK_KEY_HEADER = "x-uipath-sw-lockkey"
TENANT_ID_HEADER = "x-uipath-tenantid"

API_VERSION = "2"
LOCK_ACQUIRE_PATH = "dummy-uuid-Shared"
REFERENCED_RESOURCE_FORCE_UPDATE = "true"
CATALOG_SKIP = 0
CATALOG_TAKE = 100

CATALOG_RESOURCE_TYPES = (
    "asset",
    "process",
    "bucket",
    "index",
    "app",
    "connection",
    "queue",
)


class StudioWebClient:
    """Client for the Studio Web project file and resource APIs."""

    def __init__(
        self,
        base_url: str | None = None,
        org_id: str | None = None,
        tenant_id: str | None = None,
        access_token: str | None = None,
        project_id: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize the Studio Web client.

        Args:
            base_url: Cloud base URL (uses config if not provided)
            org_id: Organization id or name (uses config if not provided)
            tenant_id: Tenant id (uses config if not provided)
            access_token: Bearer token (uses config if not provided)
            project_id: Studio Web project id (uses config if not provided)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
        """
        self.base_url = (base_url or config.base_url).rstrip("/")
        self.org_id = org_id or config.org_id
        self.tenant_id = tenant_id or config.tenant_id
        self.access_token = access_token or config.access_token
        self.project_id = project_id or config.project_id
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout

        missing = [
            name
            for name, value in (
                ("UIPATH_ORG_ID", self.org_id),
                ("UIPATH_TENANT_ID", self.tenant_id),
                ("UIPATH_ACCESS_TOKEN", self.access_token),
                ("UIPATH_PROJECT_ID", self.project_id),
            )
            if not value
        ]
        if missing:
            raise StudioWebConfigError(
                f"Missing configuration: {', '.join(missing)}. "
                "Set the environment variables or run 'swsync init'."
            )

        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={
                    "Authorization": f"Bearer {self.access_token}",
                    TENANT_ID_HEADER: str(self.tenant_id),
                },
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> StudioWebClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # =========================
    # Request plumbing
    # =========================

    def _build_url(self, endpoint: str, tenant_scoped: bool = False) -> str:
        if tenant_scoped:
            return f"{self.base_url}/{self.org_id}/{self.tenant_id}{endpoint}"
        return f"{self.base_url}/{self.org_id}{endpoint}"

    def _endpoint(self, name: str, **params: str) -> str:
        return ENDPOINTS[name].format(
            project_id=quote(str(self.project_id), safe=""),
            **{k: quote(str(v), safe="") for k, v in params.items()},
        )

    @staticmethod
    def _lock_headers(lock_key: str | None) -> dict[str, str]:
        return {LOCK_KEY_HEADER: lock_key} if lock_key else {}

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            exception: The exception that occurred
            attempt: Current attempt number (0-based)

        Returns:
            True if the request should be retried, False otherwise
        """
        if attempt >= self.max_retries:
            return False

        if isinstance(exception, (StudioWebNetworkError, StudioWebRateLimitError)):
            return True

        if isinstance(exception, StudioWebAPIError) and exception.status_code:
            return 500 <= exception.status_code < 600

        return False

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # +/- 25% jitter
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _map_http_error(self, e: httpx.HTTPStatusError) -> StudioWebAPIError:
        """Translate an HTTP error response into a StudioWebAPIError."""
        status_code = e.response.status_code

        if status_code == 401:
            return StudioWebAuthenticationError(
                "Access token is invalid or expired", status_code
            )
        if status_code == 403:
            return StudioWebPermissionError(
                "Access forbidden - check your permissions", status_code
            )
        if status_code == 404:
            return StudioWebNotFoundError("Resource not found", status_code)
        if status_code == 409:
            return StudioWebConflictError("Conflict", status_code)
        if status_code == 429:
            return StudioWebRateLimitError(
                "Rate limit exceeded - please try again later", status_code
            )

        error_msg = f"API request failed with status {status_code}"
        try:
            if e.response.content:
                error_data = e.response.json()
                if isinstance(error_data, dict):
                    msg = (
                        error_data.get("Detail")
                        or error_data.get("Message")
                        or error_data.get("message")
                        or error_data.get("detail")
                        or error_data.get("error")
                    )
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            pass
        return StudioWebAPIError(error_msg, status_code)

    def _send(
        self,
        method: str,
        endpoint: str,
        tenant_scoped: bool = False,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request with retry logic and return the successful response.

        Raises:
            StudioWebAPIError: If the request fails after all retries
        """
        url = self._build_url(endpoint, tenant_scoped)
        client = self._get_client()
        last_exception: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                logger.debug("%s %s (attempt %d)", method, url, attempt + 1)
                response = client.request(method, url, **kwargs)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as e:
                error = self._map_http_error(e)
                last_exception = error
                if self._should_retry(error, attempt):
                    retry_after = e.response.headers.get("Retry-After")
                    if (
                        isinstance(error, StudioWebRateLimitError)
                        and retry_after
                        and retry_after.isdigit()
                    ):
                        delay = float(retry_after)
                    else:
                        delay = self._calculate_retry_delay(attempt)
                    logger.debug(f"Retrying {method} {url} in {delay:.2f}s: {error}")
                    time.sleep(delay)
                    continue
                raise error from e
            except httpx.RequestError as e:
                error = StudioWebNetworkError(f"Network error: {e}")
                last_exception = error
                if self._should_retry(error, attempt):
                    time.sleep(self._calculate_retry_delay(attempt))
                    continue
                raise error from e

        if last_exception:
            raise last_exception
        raise StudioWebAPIError("Request failed after all retry attempts")

    def _request(
        self,
        method: str,
        endpoint: str,
        tenant_scoped: bool = False,
        **kwargs: Any,
    ) -> Any:
        """Make an API request and decode the JSON body.

        Returns:
            Response JSON data, or an empty dict for an empty body
        """
        response = self._send(method, endpoint, tenant_scoped, **kwargs)
        if not response.content:
            return {}

        content_type = response.headers.get("Content-Type", "")
        if "application/json" not in content_type:
            if "text/html" in content_type:
                raise StudioWebAuthenticationError(
                    "Server returned HTML instead of JSON - "
                    "check your access token and organization"
                )
            raise StudioWebInvalidResponseError(
                f"Unexpected response type: {content_type}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise StudioWebInvalidResponseError(
                "Invalid JSON response from server"
            ) from e

    # =========================
    # Project structure
    # =========================

    def fetch_structure(self) -> ProjectStructure:
        """Fetch the full remote project tree.

        A project that has never been written to returns 404; that is
        reported as an empty structure.
        """
        try:
            data = self._request("GET", self._endpoint("structure"))
        except StudioWebNotFoundError:
            logger.debug("Structure not found, treating project as empty")
            return ProjectStructure(name="")
        return ProjectStructure.from_dict(data or {})

    def get_solution_id(self) -> str:
        """Return the id of the solution that owns the project."""
        data = self._request("GET", self._endpoint("project"))
        solution_id = data.get("solutionId") if isinstance(data, dict) else None
        if not solution_id:
            raise StudioWebInvalidResponseError("Project response has no solutionId")
        return str(solution_id)

    # =========================
    # Folder Operations
    # =========================

    def create_folder_at_root(self, name: str, lock_key: str | None) -> str | None:
        """Create a folder at the project root.

        Args:
            name: Folder name
            lock_key: Active lock key

        Returns:
            The new folder id, or None when the folder already exists or the
            server did not report an id
        """
        try:
            response = self._send(
                "POST",
                self._endpoint("create_folder"),
                json={"name": name},
                headers=self._lock_headers(lock_key),
            )
        except StudioWebConflictError:
            logger.debug(f"Folder '{name}' already exists at root")
            return None

        if "application/json" not in response.headers.get("Content-Type", ""):
            return None
        try:
            data = response.json()
        except ValueError:
            return None
        folder_id = data.get("id") if isinstance(data, dict) else None
        return str(folder_id) if folder_id else None

    def move_folder(
        self, folder_id: str, new_parent_id: str, lock_key: str | None
    ) -> None:
        """Reparent a folder."""
        self._send(
            "POST",
            self._endpoint("move_folder", folder_id=folder_id),
            json={"parentId": new_parent_id},
            headers=self._lock_headers(lock_key),
        )

    # =========================
    # File Operations
    # =========================

    @staticmethod
    def _file_part(path: str, local_file: LocalFile) -> dict[str, Any]:
        filename = path.rsplit("/", 1)[-1]
        return {"file": (filename, local_file.content, "application/octet-stream")}

    def create_file(
        self,
        path: str,
        local_file: LocalFile,
        parent_id: str | None,
        parent_path: str | None,
        lock_key: str | None,
    ) -> None:
        """Upload a new file.

        Args:
            path: Full remote path (e.g. ``source/dist/index.html``)
            local_file: File to upload
            parent_id: Id of the parent folder, when known
            parent_path: Parent folder path, used when no id is known
            lock_key: Active lock key

        Raises:
            StudioWebFileExistsError: If the file already exists remotely
        """
        data = {"path": path}
        if parent_id:
            data["parentId"] = parent_id
        elif parent_path:
            data["parentPath"] = parent_path
        try:
            self._send(
                "POST",
                self._endpoint("create_file"),
                files=self._file_part(path, local_file),
                data=data,
                headers=self._lock_headers(lock_key),
            )
        except StudioWebConflictError as e:
            raise StudioWebFileExistsError(
                f"File already exists: {path}", e.status_code
            ) from e

    def update_file(
        self,
        path: str,
        local_file: LocalFile,
        file_id: str,
        lock_key: str | None,
    ) -> None:
        """Replace the content of an existing remote file."""
        self._send(
            "PUT",
            self._endpoint("file", file_id=file_id),
            files=self._file_part(path, local_file),
            headers=self._lock_headers(lock_key),
        )

    def delete_item(self, item_id: str, lock_key: str | None) -> None:
        """Delete a file or folder by id."""
        self._send(
            "DELETE",
            self._endpoint("delete_item", item_id=item_id),
            headers=self._lock_headers(lock_key),
        )

    def download_file(self, file_id: str) -> bytes:
        """Download the raw content of a remote file."""
        response = self._send("GET", self._endpoint("file", file_id=file_id))
        return response.content

    # =========================
    # Lock Operations
    # =========================

    def get_lock(self) -> LockInfo:
        data = self._request("GET", self._endpoint("lock"))
        return LockInfo.from_dict(data if isinstance(data, dict) else {})

    def put_lock(self) -> None:
        self._send(
            "PUT",
            f"{self._endpoint('lock')}/{LOCK_ACQUIRE_PATH}",
            params={"api-version": API_VERSION},
        )

    def acquire_lock(self) -> LockInfo:
        """Obtain the project lock.

        The lock endpoint reports the current keys; when none are held a PUT
        takes the lock and a second GET returns the keys.

        Returns:
            The lock info; may hold no key if the server refused the lock
        """
        lock_info = self.get_lock()
        if lock_info.lock_key:
            return lock_info

        logger.debug("No lock held, acquiring")
        self.put_lock()
        try:
            return self.get_lock()
        except StudioWebAPIError as e:
            raise StudioWebAPIError(
                "Lock was acquired but retrieving the lock key failed; "
                f"the project may remain locked on the server: {e}"
            ) from e

    def release_lock(self, lock_key: str) -> None:
        """Release a previously acquired lock."""
        self._send(
            "DELETE",
            f"{self._endpoint('lock')}/{quote(lock_key, safe='')}",
            params={"api-version": API_VERSION},
        )

    # =========================
    # Resource Operations
    # =========================

    def find_resource_in_catalog(
        self, resource_type: str, name: str, folder_path: str
    ) -> Resource:
        """Look up a resource by name in the tenant resource catalog.

        Args:
            resource_type: One of CATALOG_RESOURCE_TYPES
            name: Resource name
            folder_path: Orchestrator folder path; empty matches any folder

        Raises:
            StudioWebNotFoundError: If no matching resource exists
        """
        api_type = resource_type.lower()
        if api_type not in CATALOG_RESOURCE_TYPES:
            raise ValueError(f"Unknown resource type: {resource_type}")

        data = self._request(
            "GET",
            ENDPOINTS["catalog_entities"].format(resource_type=api_type),
            tenant_scoped=True,
            params={"name": name, "skip": CATALOG_SKIP, "take": CATALOG_TAKE},
            headers={"Accept": "application/json"},
        )
        items = []
        if isinstance(data, dict):
            items = data.get("value") or data.get("items") or []

        for item in items:
            if item.get("name") != name:
                continue
            folders = item.get("folders") or []
            if not folder_path and folders:
                return Resource.from_catalog(item)
            if any(folder.get("path") == folder_path for folder in folders):
                return Resource.from_catalog(item)

        folder_info = (
            f" at folder path '{folder_path}'" if folder_path else " (tenant-scoped)"
        )
        raise StudioWebNotFoundError(
            f"Resource '{name}' of type '{resource_type}' not found{folder_info}"
        )

    def retrieve_connection(self, connection_key: str) -> Connection:
        """Fetch an Integration Service connection by key."""
        try:
            data = self._request(
                "GET", self._endpoint("connection", connection_key=connection_key)
            )
        except StudioWebNotFoundError as e:
            raise StudioWebNotFoundError(
                f"Connection '{connection_key}' not found", 404
            ) from e
        return Connection.from_dict(data if isinstance(data, dict) else {}, connection_key)

    def create_referenced_resource(
        self,
        solution_id: str,
        request: ReferencedResourceRequest,
        lock_key: str | None,
    ) -> ReferencedResourceResponse:
        """Add or update a resource reference in the solution.

        The lock key is scoped by the folder's fully qualified name.
        """
        scoped_lock_key = lock_key
        if lock_key and request.folder.fully_qualified_name:
            scoped_lock_key = f"{lock_key}-{request.folder.fully_qualified_name}"

        data = self._request(
            "POST",
            self._endpoint("referenced_resource", solution_id=solution_id),
            params={
                "api-version": API_VERSION,
                "forceUpdate": REFERENCED_RESOURCE_FORCE_UPDATE,
            },
            json=request.to_dict(),
            headers=self._lock_headers(scoped_lock_key),
        )
        return ReferencedResourceResponse.from_dict(data if isinstance(data, dict) else {})
