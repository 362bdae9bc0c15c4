"""HTTP client for the GitHub git-data API.

This module provides:
- GitHubClient: async HTTP client for the repository holding the notes
- Ref, commit, tree and blob operations (read and create)
- Contents API: first-commit file creation and single-file SHA lookup
- Exception hierarchy for classified API failures
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from leafsync.core.config import Settings
from leafsync.core.types import RateLimitInfo

logger = logging.getLogger(__name__)

BLOB_MODE = "100644"


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """Credentials rejected or insufficient."""


class RateLimitError(APIError):
    """Request rejected because the rate limit is exhausted."""


class NotFoundError(APIError):
    """Resource not found."""


class ConflictError(APIError):
    """Remote state conflict (includes the empty-repository response)."""


class RefConflictError(ConflictError):
    """Branch ref moved since it was read; the update is not a fast-forward."""


class NetworkError(APIError):
    """Transport failure (connection, DNS, timeout)."""


@dataclass
class TreeEntry:
    """Entry of a recursive tree listing."""

    path: str
    mode: str
    type: str  # "blob", "tree" or "commit"
    sha: str
    size: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TreeEntry:
        """Create from API response dictionary."""
        return cls(
            path=data["path"],
            mode=data["mode"],
            type=data["type"],
            sha=data["sha"],
            size=data.get("size"),
        )


@dataclass
class TreeListing:
    """Result of get_tree."""

    sha: str
    entries: list[TreeEntry]
    truncated: bool = False


class GitHubClient:
    """Async HTTP client for one repository's git-data endpoints.

    Every response updates ``rate_limit`` so callers can surface it with
    both successful and failed results.
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Connection settings (token, repository, API URL, timeout).
            transport: Optional httpx transport, used by tests.
        """
        self._settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.repo_url,
            timeout=settings.timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {settings.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "leafsync",
            },
        )
        self.rate_limit: RateLimitInfo | None = None

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.close()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, translating transport failures to NetworkError."""
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e
        info = RateLimitInfo.from_headers(response.headers)
        if info is not None:
            self.rate_limit = info
            if info.is_low:
                logger.warning(
                    f"GitHub rate limit low: {info.remaining}/{info.limit} remaining"
                )
        logger.debug(f"{method} {url} -> {response.status_code}")
        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        status = response.status_code
        if status < 400:
            return response

        detail = _error_detail(response)
        if status in (403, 429) and (
            response.headers.get("x-ratelimit-remaining") == "0"
            or "retry-after" in response.headers
        ):
            raise RateLimitError(detail or "API rate limit exceeded", status)
        if status in (401, 403):
            raise AuthenticationError(detail or "Invalid or insufficient token", status)
        if status == 404:
            raise NotFoundError(detail or "Resource not found", status)
        if status == 409:
            raise ConflictError(detail or "Conflict", status)
        raise APIError(detail or "Unknown error", status)

    async def get_repository(self) -> dict[str, Any]:
        """Fetch the repository description.

        Raises:
            NotFoundError: If the repository does not exist or the token
                cannot see it.
        """
        try:
            response = await self._request("GET", self._settings.repo_url)
        except NotFoundError as e:
            raise NotFoundError(
                f"Repository {self._settings.repo_name} not found or not accessible",
                e.status_code,
            ) from e
        data: dict[str, Any] = response.json()
        return data

    # === Refs ===

    async def get_ref(self, branch: str) -> str | None:
        """Resolve a branch to its commit SHA.

        A 404 is ambiguous: GitHub answers it for a missing branch and for a
        repository that does not exist or is hidden from the token. The
        repository is looked up in that case so only a missing branch is
        reported as None.

        Args:
            branch: Branch name.

        Returns:
            Commit SHA, or None if the repository has no commits yet or the
            branch does not exist in it.

        Raises:
            NotFoundError: If the repository itself is not found.
        """
        try:
            response = await self._request("GET", f"/git/ref/heads/{branch}")
        except NotFoundError:
            await self.get_repository()
            logger.info(f"Branch {branch} does not exist in {self._settings.repo_name}")
            return None
        except ConflictError:
            # 409: "Git Repository is empty."
            return None
        sha: str = response.json()["object"]["sha"]
        return sha

    async def update_ref(self, branch: str, commit_sha: str) -> None:
        """Move a branch to a new commit (fast-forward only).

        Raises:
            RefConflictError: If the branch moved since it was read.
        """
        try:
            await self._request(
                "PATCH",
                f"/git/refs/heads/{branch}",
                json={"sha": commit_sha, "force": False},
            )
        except ConflictError as e:
            raise RefConflictError(str(e), e.status_code) from e
        except APIError as e:
            if e.status_code == 422 and "fast forward" in str(e).lower():
                raise RefConflictError(str(e), e.status_code) from e
            raise

    async def create_ref(self, branch: str, commit_sha: str) -> None:
        """Create a branch pointing at a commit.

        Raises:
            RefConflictError: If the branch was created concurrently.
        """
        try:
            await self._request(
                "POST",
                "/git/refs",
                json={"ref": f"refs/heads/{branch}", "sha": commit_sha},
            )
        except APIError as e:
            if e.status_code == 422 and "already exists" in str(e).lower():
                raise RefConflictError(str(e), e.status_code) from e
            raise

    # === Commits ===

    async def get_commit_tree(self, commit_sha: str) -> str:
        """Get the root tree SHA of a commit."""
        response = await self._request("GET", f"/git/commits/{commit_sha}")
        sha: str = response.json()["tree"]["sha"]
        return sha

    async def create_commit(
        self,
        message: str,
        tree_sha: str,
        parents: list[str],
        author_name: str,
        author_email: str,
    ) -> str:
        """Create a commit object.

        Returns:
            SHA of the new commit.
        """
        author = {"name": author_name, "email": author_email}
        response = await self._request(
            "POST",
            "/git/commits",
            json={
                "message": message,
                "tree": tree_sha,
                "parents": parents,
                "author": author,
                "committer": author,
            },
        )
        sha: str = response.json()["sha"]
        return sha

    # === Trees and blobs ===

    async def get_tree(self, tree_sha: str, recursive: bool = True) -> TreeListing:
        """List a tree, recursively by default."""
        params = {"recursive": "1"} if recursive else None
        response = await self._request("GET", f"/git/trees/{tree_sha}", params=params)
        data = response.json()
        return TreeListing(
            sha=data["sha"],
            entries=[TreeEntry.from_dict(e) for e in data.get("tree", [])],
            truncated=bool(data.get("truncated", False)),
        )

    async def create_tree(self, entries: list[dict[str, Any]]) -> str:
        """Create a tree from a flat list of fully-qualified path entries.

        No base tree is sent: the entries are the complete tree, so any
        path not listed is absent from the result.

        Args:
            entries: Dicts with path, mode, type and either content or sha.

        Returns:
            SHA of the new tree.
        """
        response = await self._request("POST", "/git/trees", json={"tree": entries})
        sha: str = response.json()["sha"]
        return sha

    async def get_blob(self, blob_sha: str) -> str:
        """Download a blob and decode it as UTF-8 text."""
        response = await self._request("GET", f"/git/blobs/{blob_sha}")
        data = response.json()
        raw = data.get("content", "")
        if data.get("encoding") == "base64":
            return base64.b64decode(raw).decode("utf-8")
        return str(raw)

    # === Contents API ===

    async def put_file(
        self,
        path: str,
        content: str,
        message: str,
        author_name: str,
        author_email: str,
    ) -> str:
        """Create a file with its own commit through the contents API.

        Unlike the git-data endpoints this works on a repository without
        any commit, so it is used to create the first commit.

        Args:
            path: Repository path of the file.
            content: File content (UTF-8 text).
            message: Commit message.
            author_name: Author and committer name.
            author_email: Author and committer email.

        Returns:
            SHA of the commit that added the file.
        """
        author = {"name": author_name, "email": author_email}
        response = await self._request(
            "PUT",
            f"/contents/{path}",
            json={
                "message": message,
                "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
                "branch": self._settings.branch,
                "author": author,
                "committer": author,
            },
        )
        sha: str = response.json()["commit"]["sha"]
        return sha

    async def fetch_file_sha(self, path: str) -> str | None:
        """Look up the blob SHA of a single file through the contents API.

        Args:
            path: Repository path of the file.

        Returns:
            Blob SHA, or None if the file does not exist.
        """
        try:
            response = await self._request(
                "GET", f"/contents/{path}", params={"ref": self._settings.branch}
            )
        except NotFoundError:
            return None
        data = response.json()
        if not isinstance(data, dict) or data.get("type") != "file":
            return None
        sha: str = data["sha"]
        return sha


def _error_detail(response: httpx.Response) -> str:
    """Extract the error message from a GitHub error body."""
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict):
        return str(data.get("message", ""))
    return ""
