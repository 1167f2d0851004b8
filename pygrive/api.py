"""API client for the remote drive store."""

from __future__ import annotations

import json
import logging
import random
import time
import uuid
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Callable

import httpx

from .config import config
from .exceptions import (
    GriveAPIError,
    GriveAuthenticationError,
    GriveConfigError,
    GriveFileNotFoundError,
    GriveInvalidResponseError,
    GriveNetworkError,
    GriveNotFoundError,
    GrivePermissionError,
    GriveRateLimitError,
    GriveUploadError,
)
from .mime_types import FOLDER_MIME_TYPE
from .models import RemoteNode

logger = logging.getLogger(__name__)

FILES_ENDPOINT = "/drive/v2/files"
UPLOAD_ENDPOINT = "/upload/drive/v2/files"

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})
"""Methods that are safe to resend after an unknown outcome"""


class DriveClient:
    """Client for the Drive v2 files API.

    Implements the ``RemoteStore`` interface (list, get, insert) used by the
    sync engine.
    """

    def __init__(
        self,
        access_token: str | None = None,
        api_url: str | None = None,
        refresh_token: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        token_url: str | None = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        page_size: int = 1000,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the API client.

        Args:
            access_token: OAuth2 access token (uses config if not provided)
            api_url: Base API URL (uses config if not provided)
            refresh_token: OAuth2 refresh token used when the access token expires
            client_id: OAuth2 client id (needed for refreshing)
            client_secret: OAuth2 client secret (needed for refreshing)
            token_url: OAuth2 token endpoint
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            page_size: Number of entries requested per listing page
            transport: Optional httpx transport (used by tests)
        """
        self.access_token = access_token or config.access_token
        self.refresh_token = refresh_token or config.refresh_token
        self.client_id = client_id or config.client_id
        self.client_secret = client_secret or config.client_secret
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.token_url = token_url or config.token_url
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.page_size = page_size
        self._transport = transport

        if not self.access_token and not self.can_refresh:
            raise GriveConfigError(
                "Credentials not configured. Run 'pygrive init' or set "
                "PYGRIVE_ACCESS_TOKEN environment variable."
            )

        self._client: httpx.Client | None = None

    @property
    def can_refresh(self) -> bool:
        """Whether an expired access token can be renewed."""
        return bool(self.refresh_token and self.client_id and self.client_secret)

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
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

    def __enter__(self) -> DriveClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _auth_headers(self) -> dict[str, str]:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    def refresh_access_token(self) -> str:
        """Exchange the refresh token for a new access token.

        Returns:
            The new access token

        Raises:
            GriveAuthenticationError: If refreshing is impossible or rejected
        """
        if not self.can_refresh:
            raise GriveAuthenticationError(
                "Access token expired and no refresh credentials are configured"
            )

        logger.debug("Refreshing access token")
        try:
            response = self._get_client().post(
                self.token_url,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": self.refresh_token,
                    "grant_type": "refresh_token",
                },
            )
            response.raise_for_status()
            token = response.json().get("access_token")
        except httpx.HTTPStatusError as e:
            raise GriveAuthenticationError(
                f"Token refresh rejected with status {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise GriveNetworkError(f"Network error during token refresh: {e}") from e
        except ValueError as e:
            raise GriveInvalidResponseError("Invalid token refresh response") from e

        if not token:
            raise GriveAuthenticationError("Token refresh returned no access token")

        self.access_token = token
        return token

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

        # Transient failures
        if isinstance(exception, (GriveNetworkError, GriveRateLimitError)):
            return True

        if isinstance(exception, httpx.HTTPStatusError):
            return 500 <= exception.response.status_code < 600

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

    def _handle_http_error(
        self, e: httpx.HTTPStatusError, attempt: int
    ) -> tuple[Exception, bool]:
        """Map an HTTP error to a pygrive exception.

        Args:
            e: The HTTP error exception
            attempt: Current attempt number

        Returns:
            Tuple of (exception to raise, should_retry)
        """
        status_code = e.response.status_code

        if status_code == 401:
            return (
                GriveAuthenticationError("Invalid or expired access token"),
                False,
            )
        if status_code == 403:
            # The Drive API reports quota throttling as 403 rateLimitExceeded
            if "rateLimitExceeded" in e.response.text:
                return (
                    GriveRateLimitError("Rate limit exceeded"),
                    attempt < self.max_retries,
                )
            return (
                GrivePermissionError("Access forbidden - check your permissions"),
                False,
            )
        if status_code == 404:
            return (GriveNotFoundError("Resource not found"), False)
        if status_code == 429:
            return (
                GriveRateLimitError("Rate limit exceeded - please try again later"),
                attempt < self.max_retries,
            )

        error_msg = f"API request failed with status {status_code}"
        try:
            if e.response.content:
                error_data = e.response.json()
                if isinstance(error_data, dict):
                    error = error_data.get("error")
                    msg = error.get("message") if isinstance(error, dict) else error
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            pass

        should_retry = 500 <= status_code < 600 and attempt < self.max_retries
        return (GriveAPIError(error_msg), should_retry)

    def _request(
        self,
        method: str,
        endpoint: str,
        content_factory: Callable[[], Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Make an API request with retry and token refresh logic.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            content_factory: Optional callable producing a fresh request body
                for every attempt (streamed uploads cannot be replayed)
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data

        Non-idempotent requests (inserts) are only retried when the server
        cannot have acted on them: throttling responses and connection
        failures. A 5xx or a lost reply to a POST is raised immediately.

        Raises:
            GriveAPIError: If the request fails after all retries
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        idempotent = method.upper() in IDEMPOTENT_METHODS
        extra_headers = kwargs.pop("headers", {})
        last_exception: Exception | None = None
        refreshed = False
        client = self._get_client()

        attempt = 0
        while attempt <= self.max_retries:
            headers = {**extra_headers, **self._auth_headers()}
            if content_factory is not None:
                kwargs["content"] = content_factory()
            try:
                response = client.request(method, url, headers=headers, **kwargs)
                response.raise_for_status()

                content_type = response.headers.get("Content-Type", "")
                if response.content and "application/json" not in content_type:
                    raise GriveInvalidResponseError(
                        f"Unexpected response type: {content_type}"
                    )
                if response.content:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise GriveInvalidResponseError(
                            "Invalid JSON response from server"
                        ) from e
                return {}

            except httpx.HTTPStatusError as e:
                if (
                    e.response.status_code == 401
                    and not refreshed
                    and self.can_refresh
                ):
                    refreshed = True
                    self.refresh_access_token()
                    continue

                error, should_retry = self._handle_http_error(e, attempt)
                last_exception = error
                if should_retry and (
                    idempotent or isinstance(error, GriveRateLimitError)
                ):
                    retry_after = e.response.headers.get("Retry-After")
                    if isinstance(error, GriveRateLimitError) and (
                        retry_after and retry_after.isdigit()
                    ):
                        delay = float(retry_after)
                    else:
                        delay = self._calculate_retry_delay(attempt)
                    logger.debug(
                        f"{method} {endpoint} failed ({error}), "
                        f"retrying in {delay:.1f}s"
                    )
                    time.sleep(delay)
                    attempt += 1
                    continue
                raise error from e
            except GriveAPIError:
                raise
            except httpx.RequestError as e:
                error = GriveNetworkError(f"Network error: {e}")
                last_exception = error
                not_sent = isinstance(e, (httpx.ConnectError, httpx.ConnectTimeout))
                if (idempotent or not_sent) and self._should_retry(error, attempt):
                    delay = self._calculate_retry_delay(attempt)
                    logger.debug(f"{method} {endpoint} failed ({e}), retrying")
                    time.sleep(delay)
                    attempt += 1
                    continue
                raise error from e

        if last_exception:
            raise last_exception
        raise GriveAPIError("Request failed after all retry attempts")

    # =========================
    # RemoteStore operations
    # =========================

    def list_children(
        self, parent_id: str, exclude_trashed: bool = True
    ) -> list[RemoteNode]:
        """List the direct children of a folder, following pagination.

        Args:
            parent_id: Folder id ("root" for the drive root)
            exclude_trashed: Whether trashed entries should be left out

        Returns:
            List of child nodes (children not fetched)
        """
        escaped = parent_id.replace("\\", "\\\\").replace("'", "\\'")
        query = f"'{escaped}' in parents"
        if exclude_trashed:
            query = f"trashed = false and {query}"

        nodes: list[RemoteNode] = []
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {"q": query, "maxResults": self.page_size}
            if page_token:
                params["pageToken"] = page_token
            result = self._request("GET", FILES_ENDPOINT, params=params)

            for item in result.get("items", []):
                node = RemoteNode.from_api_response(item)
                if exclude_trashed and node.trashed:
                    continue
                nodes.append(node)

            page_token = result.get("nextPageToken")
            if not page_token:
                break

        logger.debug(f"Listed {len(nodes)} children of {parent_id}")
        return nodes

    def get_node(self, node_id: str) -> RemoteNode:
        """Fetch a single node.

        Args:
            node_id: Node id ("root" is an alias for the drive root)

        Returns:
            The node (children not fetched)
        """
        result = self._request("GET", f"{FILES_ENDPOINT}/{node_id}")
        if not isinstance(result, dict) or "id" not in result:
            raise GriveInvalidResponseError(f"Invalid file resource for {node_id}")
        return RemoteNode.from_api_response(result)

    def insert_node(
        self,
        parent_id: str,
        title: str,
        mime_type: str,
        content_path: Path | None = None,
    ) -> RemoteNode:
        """Create a folder or upload a file.

        Args:
            parent_id: Id of the parent folder
            title: Label of the new node
            mime_type: Content type (``FOLDER_MIME_TYPE`` for folders)
            content_path: Local file whose bytes are uploaded (files only)

        Returns:
            The created node
        """
        metadata = {
            "title": title,
            "parents": [{"id": parent_id}],
            "mimeType": mime_type,
        }

        if content_path is None:
            result = self._request("POST", FILES_ENDPOINT, json=metadata)
        else:
            result = self._upload_multipart(Path(content_path), metadata, mime_type)

        if not isinstance(result, dict) or "id" not in result:
            raise GriveInvalidResponseError(f"Invalid insert response for '{title}'")
        return RemoteNode.from_api_response(result)

    def create_folder(self, name: str, parent_id: str) -> RemoteNode:
        """Create a folder (convenience wrapper around insert_node)."""
        return self.insert_node(parent_id, name, FOLDER_MIME_TYPE)

    def _upload_multipart(
        self, file_path: Path, metadata: dict[str, Any], mime_type: str
    ) -> Any:
        """Upload metadata and content in one multipart/related request.

        The file is streamed from disk; it is never read into memory.
        """
        try:
            file_size = file_path.stat().st_size
        except FileNotFoundError as e:
            raise GriveFileNotFoundError(str(file_path)) from e
        except OSError as e:
            raise GriveUploadError(f"Failed to read {file_path}: {e}") from e

        boundary = f"pygrive-{uuid.uuid4().hex}"
        head = (
            f"--{boundary}\r\n"
            "Content-Type: application/json; charset=UTF-8\r\n\r\n"
            f"{json.dumps(metadata)}\r\n"
            f"--{boundary}\r\n"
            f"Content-Type: {mime_type}\r\n\r\n"
        ).encode("utf-8")
        tail = f"\r\n--{boundary}--\r\n".encode("utf-8")

        def body() -> Iterator[bytes]:
            yield head
            with open(file_path, "rb") as f:
                while True:
                    chunk = f.read(64 * 1024)
                    if not chunk:
                        break
                    yield chunk
            yield tail

        headers = {
            "Content-Type": f"multipart/related; boundary={boundary}",
            "Content-Length": str(len(head) + file_size + len(tail)),
        }

        try:
            return self._request(
                "POST",
                UPLOAD_ENDPOINT,
                content_factory=body,
                params={"uploadType": "multipart"},
                headers=headers,
            )
        except OSError as e:
            raise GriveUploadError(f"Failed to read {file_path}: {e}") from e
