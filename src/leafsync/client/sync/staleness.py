"""Remote HEAD lookup.

This module provides:
- StalenessOracle: resolves the branch ref to its commit SHA with a single
  call (no tree or blob access)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from leafsync.client.sync.errors import classify_error
from leafsync.client.sync.types import FailureReason, HeadResult

if TYPE_CHECKING:
    from leafsync.client.api import GitHubClient
    from leafsync.core.config import Settings

logger = logging.getLogger(__name__)


class StalenessOracle:
    """Resolves the current remote HEAD commit.

    Used on its own for stale checks and as the first step of push and pull.
    """

    def __init__(self, client: GitHubClient, settings: Settings) -> None:
        """Initialize the oracle.

        Args:
            client: HTTP client bound to the repository.
            settings: Settings naming the branch.
        """
        self._client = client
        self._settings = settings

    async def fetch_head(self) -> HeadResult:
        """Resolve the branch HEAD commit SHA.

        Returns:
            HeadResult with status "success" and the commit SHA,
            EMPTY_REPOSITORY when the branch has no commits, or the
            classified failure reason. Never raises.
        """
        if not self._settings.is_valid:
            return HeadResult(status=FailureReason.SETTINGS_INVALID)

        try:
            sha = await self._client.get_ref(self._settings.branch)
        except Exception as e:
            reason = classify_error(e)
            logger.error(f"Failed to resolve {self._settings.branch} HEAD: {e}")
            return HeadResult(
                status=reason,
                rate_limit=self._client.rate_limit,
                error=str(e),
            )

        if sha is None:
            logger.info(f"Branch {self._settings.branch} has no commits yet")
            return HeadResult(
                status=FailureReason.EMPTY_REPOSITORY,
                rate_limit=self._client.rate_limit,
            )

        logger.debug(f"Remote HEAD of {self._settings.branch}: {sha}")
        return HeadResult(status="success", commit_sha=sha, rate_limit=self._client.rate_limit)
