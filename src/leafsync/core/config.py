"""Shared configuration classes for leafsync.

This module defines the settings used by the HTTP client, the sync engines
and the CLI.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_BRANCH = "main"


@dataclass
class Settings:
    """Configuration for connecting to the remote repository.

    Used by the HTTP client (GitHubClient), the sync engines and the CLI
    to ensure consistent connection settings.

    Attributes:
        token: Bearer token for the GitHub API.
        repo_name: Repository identifier in "owner/name" form.
        branch: Branch that holds the notes.
        username: Committer name for pushed commits.
        email: Committer email for pushed commits.
        api_url: Base URL of the REST API.
        timeout: Request timeout in seconds.
        theme: UI theme preference (persisted, not used by sync).
        tool_name: Tool name preference (persisted, not used by sync).
    """

    token: str = ""
    repo_name: str = ""
    branch: str = DEFAULT_BRANCH
    username: str = ""
    email: str = ""
    api_url: str = DEFAULT_API_URL
    timeout: float = 30.0
    theme: str = "light"
    tool_name: str = ""

    def __post_init__(self) -> None:
        """Normalize API URL and repository name."""
        self.api_url = self.api_url.rstrip("/")
        self.repo_name = self.repo_name.strip().strip("/")
        self.token = self.token.strip()
        self.branch = self.branch.strip() or DEFAULT_BRANCH

    @property
    def is_valid(self) -> bool:
        """Check that token and repository are set.

        Returns:
            True if a network call can be attempted.
        """
        return bool(self.token) and bool(self.repo_name)

    @property
    def repo_url(self) -> str:
        """Get the API base URL of the repository."""
        return f"{self.api_url}/repos/{self.repo_name}"

    @property
    def committer_name(self) -> str:
        """Name used for authored commits."""
        return self.username or "leafsync user"

    @property
    def committer_email(self) -> str:
        """Email used for authored commits."""
        return self.email or "user@example.com"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """Create from a stored dictionary, ignoring unknown keys.

        Missing keys fall back to the defaults.
        """
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})
