"""API client for the remote version control service."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

from .config import config
from .exceptions import (
    AssetVCSAPIError,
    AssetVCSAuthenticationError,
    AssetVCSConfigError,
    AssetVCSDownloadError,
    AssetVCSInvalidResponseError,
    AssetVCSNetworkError,
    AssetVCSNotFoundError,
    AssetVCSPermissionError,
    AssetVCSRateLimitError,
)
from .status import RemoteStatus
from .utils import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT,
    MAX_RETRY_DELAY,
    make_path,
    normalize_path,
)

logger = logging.getLogger(__name__)


# Client errors that no retry can fix
_FATAL_STATUS_ERRORS: dict[int, tuple[type[AssetVCSAPIError], str]] = {
    401: (AssetVCSAuthenticationError, "Invalid API key or unauthorized access"),
    403: (AssetVCSPermissionError, "Access forbidden - check your permissions"),
    404: (AssetVCSNotFoundError, "Resource not found"),
}


def _error_detail(response: httpx.Response) -> str | None:
    """Return the server's error message from a JSON error body, if any."""
    if not response.content:
        return None
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    return data.get("message") or data.get("error") or data.get("detail")


def _decode_json(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    content_type = response.headers.get("Content-Type", "")
    if "text/html" in content_type:
        # A login page instead of an API answer
        raise AssetVCSAuthenticationError(
            "Invalid API key - server returned HTML instead of JSON"
        )
    if "application/json" not in content_type:
        raise AssetVCSInvalidResponseError(f"Unexpected response type: {content_type}")
    try:
        return response.json()
    except ValueError as e:
        raise AssetVCSInvalidResponseError("Invalid JSON response from server") from e


def _retry_after(response: httpx.Response) -> float | None:
    """Seconds requested by a Retry-After header, if given as a number."""
    retry_after = response.headers.get("Retry-After", "")
    return float(retry_after) if retry_after.isdigit() else None


@dataclass
class PullResult:
    """Files changed on disk by a pull."""

    downloaded: list[str] = field(default_factory=list)
    """Project paths written with the latest remote content"""

    deleted: list[str] = field(default_factory=list)
    """Project paths removed because they were deleted remotely"""


class VCSClient:
    """Client for the remote version control service.

    Both ``/status`` and ``/latest`` only read server state, so every
    request may be repeated. Rate limiting (429), server errors (5xx) and
    transport errors are retried up to ``max_retries`` times; a pull that
    still fails is left to the synchronizer, which logs it and carries on.
    Authentication, permission and not-found errors are never retried.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_url: str | None = None,
        project_root: Path | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the API client.

        Args:
            api_key: Optional API key (uses config if not provided)
            api_url: Optional API URL (uses config if not provided)
            project_root: Folder that pulled files are written to
                (uses config if not provided)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key or config.api_key
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.project_root = project_root or config.project_root
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport

        if not self.api_key:
            raise AssetVCSConfigError(
                "API key not configured. "
                "Please set ASSETVCS_API_KEY environment variable."
            )

        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Exponential backoff with +/- 25% jitter, capped at MAX_RETRY_DELAY.

        Several editors syncing the same project after a server restart
        would otherwise retry in lockstep.
        """
        base_delay = min(self.retry_delay * (2**attempt), MAX_RETRY_DELAY)
        return base_delay * random.uniform(0.75, 1.25)

    def _handle_http_error(
        self, e: httpx.HTTPStatusError, attempt: int
    ) -> tuple[AssetVCSAPIError, bool]:
        """Map an HTTP error to an exception and decide whether to retry.

        Returns:
            Tuple of (exception to raise, should_retry)

        Raises:
            AssetVCSAPIError: Directly for errors that are never retried
        """
        status_code = e.response.status_code
        fatal = _FATAL_STATUS_ERRORS.get(status_code)
        if fatal is not None:
            error_class, message = fatal
            raise error_class(message) from e

        retries_left = attempt < self.max_retries
        if status_code == 429:
            return (AssetVCSRateLimitError("Rate limit exceeded"), retries_left)

        message = f"API request failed with status {status_code}"
        detail = _error_detail(e.response)
        if detail:
            message = f"{message}: {detail}"
        return (AssetVCSAPIError(message), retries_left and status_code >= 500)

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Send a request, retrying transient failures.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Decoded JSON body, or an empty dict for an empty body

        Raises:
            AssetVCSAPIError: If the request fails after all retries
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        client = self._get_client()
        attempt = 0

        while True:
            delay: float | None = None
            try:
                response = client.request(method, url, **kwargs)
                response.raise_for_status()
                return _decode_json(response)
            except httpx.HTTPStatusError as e:
                error, should_retry = self._handle_http_error(e, attempt)
                if not should_retry:
                    raise error from e
                if isinstance(error, AssetVCSRateLimitError):
                    delay = _retry_after(e.response)
                logger.debug(f"{method} {endpoint} failed ({error}), retrying")
            except httpx.RequestError as e:
                if attempt >= self.max_retries:
                    raise AssetVCSNetworkError(f"Network error: {e}") from e
                logger.debug(f"{method} {endpoint} failed ({e}), retrying")

            if delay is None:
                delay = self._calculate_retry_delay(attempt)
            time.sleep(delay)
            attempt += 1

    # =========================
    # Status
    # =========================

    def get_status(
        self, files: list[str], folders: list[str] | None = None
    ) -> dict[str, RemoteStatus]:
        """Get the remote status of files.

        Args:
            files: Project paths of the files
            folders: Project paths of folders whose files should be
                reported as well

        Returns:
            Mapping of project path to RemoteStatus. Files the server does
            not mention are in sync.
        """
        data = self._request(
            "POST", "/status", json={"files": files, "folders": folders or []}
        )
        statuses: dict[str, RemoteStatus] = {}
        for entry in data.get("files", []):
            path = normalize_path(entry["path"])
            statuses[path] = RemoteStatus.from_names(entry.get("status", []))
        return statuses

    # =========================
    # Pull
    # =========================

    def get_latest(self, files: list[str], folders: list[str]) -> PullResult:
        """Bring files and folders up to date with the remote.

        The server answers with every file that differs from the remote,
        each marked as deleted or not. Deleted files are removed locally,
        all others are downloaded into the project root.

        Args:
            files: Project paths of individual files
            folders: Project paths of folders to update as a whole

        Returns:
            PullResult listing the files changed on disk

        Raises:
            AssetVCSInvalidResponseError: If the server names a file
                outside the project root
        """
        data = self._request(
            "POST", "/latest", json={"files": files, "folders": folders}
        )
        entries = [
            (normalize_path(entry["path"]), bool(entry.get("deleted", False)))
            for entry in data.get("files", [])
        ]
        # Reject the whole answer before anything on disk is touched.
        for path, _ in entries:
            self._local_path(path)

        result = PullResult()
        for path, deleted in entries:
            if deleted:
                local_path = self._local_path(path)
                if local_path.exists():
                    local_path.unlink()
                result.deleted.append(path)
            else:
                self.download_file(path)
                result.downloaded.append(path)
        return result

    def _local_path(self, path: str) -> Path:
        """Resolve a project path from the server below the project root.

        Raises:
            AssetVCSInvalidResponseError: If the path leaves the project root
        """
        root = self.project_root.resolve()
        local_path = make_path(root, path).resolve()
        if local_path == root or root not in local_path.parents:
            raise AssetVCSInvalidResponseError(
                f"Server sent a path outside the project: {path}"
            )
        return local_path

    def download_file(self, path: str) -> Path:
        """Download the latest content of a file into the project root.

        Args:
            path: Project path of the file

        Returns:
            Local path where the file was saved

        Raises:
            AssetVCSDownloadError: If the download fails
        """
        url = f"{self.api_url}/files/content"
        save_path = self._local_path(path)
        client = self._get_client()

        try:
            save_path.parent.mkdir(parents=True, exist_ok=True)
            with client.stream("GET", url, params={"path": path}) as response:
                response.raise_for_status()
                with open(save_path, "wb") as f:
                    for chunk in response.iter_bytes(chunk_size=8192):
                        if chunk:
                            f.write(chunk)
            return save_path

        except httpx.HTTPStatusError as e:
            raise AssetVCSDownloadError(f"Download of {path} failed: {e}") from e
        except httpx.RequestError as e:
            raise AssetVCSNetworkError(f"Network error during download: {e}") from e
        except OSError as e:
            raise AssetVCSDownloadError(f"Failed to write {save_path}: {e}") from e

    def validate_api_key(self) -> bool:
        """Check whether the API key is accepted by the server."""
        try:
            self._request("GET", "/user")
        except AssetVCSAuthenticationError:
            return False
        return True
