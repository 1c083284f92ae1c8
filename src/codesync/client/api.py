"""HTTP client for the remote code index API.

This module provides:
- IndexClient: Async HTTP client for the private repository upload API
- Repository status, registration and index progress operations
- Fingerprint lookup and file add/update operations

Every request is bound to a local repository root through the
``repo_path`` cookie, which the server uses to scope the session.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from codesync.core.config import ServerConfig

logger = logging.getLogger(__name__)

STATUS_NOT_FOUND = "notFound"
STATUS_ERROR = "error"
INDEX_DONE = "done"


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(APIError):
    """Repository not found on the server."""


class RemoteUnavailableError(APIError):
    """The server could not be reached."""


class IndexClient:
    """Async HTTP client for the remote code index.

    Usage:
        async with IndexClient(config, root) as client:
            repo_id = await client.register_repo()
            await client.add_file(repo_id, "./main.py", "print('hi')")
    """

    def __init__(
        self,
        config: ServerConfig,
        repo_path: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Server connection settings.
            repo_path: Absolute repository root bound to this session.
            transport: Optional httpx transport (used by tests).
        """
        self._config = config
        self._repo_path = repo_path
        self._client = httpx.AsyncClient(
            base_url=config.server_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
            cookies={"repo_path": repo_path},
            transport=transport,
        )

    @property
    def repo_path(self) -> str:
        """Get the repository root bound to this client."""
        return self._repo_path

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> IndexClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.close()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request and raise on failure.

        Raises:
            RemoteUnavailableError: On transport errors (connection, timeout).
            NotFoundError: On HTTP 404.
            APIError: On any other non-success status.
        """
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise RemoteUnavailableError(f"{method} {url} failed: {e}") from e

        if response.status_code == 404:
            raise NotFoundError("Resource not found", 404)
        if response.status_code >= 400:
            raise APIError(
                f"{method} {url} returned {response.status_code}",
                response.status_code,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        """Decode a JSON response body.

        Raises:
            APIError: If the body is not valid JSON.
        """
        try:
            return response.json()
        except ValueError as e:
            raise APIError(f"Invalid response body: {e}", response.status_code) from e

    # === Repository operations ===

    async def check_status(self, repo_id: str) -> str:
        """Get the sync status of a repository.

        Returns:
            The server's status string, "notFound" if the server does not
            know the repository, or "error" on any other failure.
        """
        try:
            response = await self._client.get(f"/repos/{repo_id}/status")
        except httpx.RequestError as e:
            logger.warning(f"Status check for {repo_id} failed: {e}")
            return STATUS_ERROR

        if response.status_code in (400, 404):
            return STATUS_NOT_FOUND
        if response.status_code != 200:
            return STATUS_ERROR
        try:
            return str(response.json()["status"])
        except (ValueError, KeyError, TypeError):
            return STATUS_ERROR

    async def register_repo(self) -> str:
        """Register a new private repository.

        Returns:
            The identifier assigned by the server.
        """
        response = await self._request("POST", "/upload/repos/private")
        data = self._json(response)
        try:
            repo_id = str(data["id"])
        except (KeyError, TypeError) as e:
            raise APIError(f"Unexpected register response: {data!r}") from e
        message = data.get("message", "") if isinstance(data, dict) else ""
        logger.info(f"Registered repository {repo_id}: {message}")
        return repo_id

    # === File operations ===

    async def get_fingerprints(
        self, repo_id: str, paths: list[str]
    ) -> dict[str, str | None]:
        """Get the fingerprints the server has on record.

        Args:
            repo_id: Repository identifier.
            paths: Relative paths to look up.

        Returns:
            Mapping of every requested path to its fingerprint, or None when
            the server has no record of it.
        """
        response = await self._request(
            "POST", f"/upload/repos/private/uuids/{repo_id}", json=paths
        )
        data = self._json(response)

        if isinstance(data, dict):
            return {path: data.get(path) or None for path in paths}
        if not isinstance(data, list):
            raise APIError("Unexpected fingerprint response")

        found: dict[str, str | None] = {}
        for i, path in enumerate(paths):
            value = data[i] if i < len(data) else None
            found[path] = value or None
        return found

    async def add_file(self, repo_id: str, path: str, contents: str) -> None:
        """Upload a file the server has no record of."""
        await self._request(
            "POST",
            f"/upload/repos/private/add_file/{repo_id}",
            json={"file": path, "contents": contents},
        )

    async def update_file(self, repo_id: str, path: str, contents: str) -> None:
        """Upload new contents for a file the server already has."""
        await self._request(
            "POST",
            f"/upload/repos/private/update_file/{repo_id}",
            json={"file": path, "contents": contents},
        )

    # === Indexing operations ===

    async def finish_upload(self, repo_id: str) -> None:
        """Ask the server to (re)index the uploaded files."""
        await self._request("POST", f"/upload/repos/private/finish_upload/{repo_id}")

    async def index_progress(self, repo_id: str) -> float | str:
        """Get remote indexing progress.

        Returns:
            "done" when indexing has finished, otherwise a fraction in [0, 1].
        """
        response = await self._request(
            "GET", f"/upload/repos/private/index_progress/{repo_id}"
        )
        data = self._json(response)
        try:
            progress = data["progress"]
            if progress == INDEX_DONE:
                return INDEX_DONE
            return float(progress)
        except (KeyError, TypeError, ValueError) as e:
            raise APIError(f"Unexpected progress response: {data!r}") from e
