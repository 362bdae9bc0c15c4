"""Commit identity comparison.

The local view is stale exactly when the remote HEAD commit differs from
the commit recorded after the last successful push or pull. Content is
never compared.
"""

from __future__ import annotations

from leafsync.client.sync.types import Stale, StaleCheckResult, UpToDate


def decide_staleness(
    remote_commit_sha: str | None,
    last_known_commit_sha: str | None,
) -> StaleCheckResult:
    """Decide staleness from two commit SHAs.

    Args:
        remote_commit_sha: Current remote HEAD, None for an empty repository.
        last_known_commit_sha: Commit recorded locally, None if never synced.

    Returns:
        Stale if both are known and differ, UpToDate otherwise.
    """
    if (
        remote_commit_sha is not None
        and last_known_commit_sha
        and remote_commit_sha != last_known_commit_sha
    ):
        return Stale(
            remote_commit_sha=remote_commit_sha,
            local_commit_sha=last_known_commit_sha,
        )
    return UpToDate()
