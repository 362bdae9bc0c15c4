"""Sync coordinator: public entry point for push, pull and stale checks.

This module provides:
- SyncCoordinator: Validates preconditions, owns the push lock and
  delegates to CommitBuilder, PriorityPullFetcher and StalenessOracle

Every operation returns a typed result; exceptions never cross this
boundary.

Push preconditions (checked before any network call, in order):
    | Condition                  | Reason           |
    |----------------------------|------------------|
    | operations locked          | LOCKED           |
    | no leaves                  | NO_CONTENT       |
    | push already in flight     | BUSY             |
    | settings invalid           | SETTINGS_INVALID |
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from leafsync.client.api import GitHubClient
from leafsync.client.sync.domain.versions import decide_staleness
from leafsync.client.sync.pull import DEFAULT_MAX_CONCURRENT_FETCHES, PriorityPullFetcher
from leafsync.client.sync.push import CommitBuilder
from leafsync.client.sync.staleness import StalenessOracle
from leafsync.client.sync.types import (
    ArchiveData,
    CheckFailed,
    FailureReason,
    PullOptions,
    PullResult,
    PushResult,
    StaleCheckResult,
    UpToDate,
)

if TYPE_CHECKING:
    from leafsync.core.config import Settings
    from leafsync.core.types import Leaf, Metadata, Note

logger = logging.getLogger(__name__)

ClientFactory = Callable[["Settings"], GitHubClient]


class SyncCoordinator:
    """Entry point for sync operations.

    At most one push runs at a time per coordinator. Pulls and stale checks
    are not serialized.

    Usage:
        coordinator = SyncCoordinator()
        result = await coordinator.execute_push(leaves, notes, settings, False)
        if result.success:
            cache.set_last_commit_sha(result.commit_sha)
    """

    def __init__(
        self,
        client_factory: ClientFactory = GitHubClient,
        max_concurrent_fetches: int = DEFAULT_MAX_CONCURRENT_FETCHES,
    ) -> None:
        """Initialize the coordinator.

        Args:
            client_factory: Creates an HTTP client for a settings snapshot.
            max_concurrent_fetches: Blob fetches in flight during a pull.
        """
        self._client_factory = client_factory
        self._max_concurrent_fetches = max_concurrent_fetches
        self._push_lock = asyncio.Lock()

    @property
    def is_pushing(self) -> bool:
        """Check if a push is in flight."""
        return self._push_lock.locked()

    async def execute_push(
        self,
        leaves: list[Leaf],
        notes: list[Note],
        settings: Settings,
        operations_locked: bool,
        archive: ArchiveData | None = None,
        metadata: Metadata | None = None,
    ) -> PushResult:
        """Push the complete local state as one commit.

        Args:
            leaves: All home leaves.
            notes: All home notes.
            settings: Settings snapshot for this push.
            operations_locked: True until the initial pull has completed.
            archive: Archive state, if loaded locally.
            metadata: Local home metadata.

        Returns:
            PushResult with the new commit SHA on success.
        """
        if operations_locked:
            logger.info("Push rejected: operations locked until initial pull completes")
            return PushResult.failure(FailureReason.LOCKED)
        if not leaves:
            logger.info("Push rejected: no leaves")
            return PushResult.failure(FailureReason.NO_CONTENT)
        if self._push_lock.locked():
            logger.info("Push rejected: another push is in progress")
            return PushResult.failure(FailureReason.BUSY)
        if not settings.is_valid:
            logger.info("Push rejected: settings invalid")
            return PushResult.failure(FailureReason.SETTINGS_INVALID)

        async with self._push_lock:
            logger.info(f"Push of {len(leaves)} leaves to {settings.repo_name}@{settings.branch}")
            async with self._client_factory(settings) as client:
                builder = CommitBuilder(client, settings)
                return await builder.push(leaves, notes, metadata=metadata, archive=archive)

    async def execute_pull(
        self,
        settings: Settings,
        options: PullOptions | None = None,
    ) -> PullResult:
        """Pull one world from the remote repository.

        On success the caller replaces its local cache for the world with
        the returned collections and records the commit SHA.

        Args:
            settings: Settings snapshot for this pull.
            options: Priority hint, progress callback and world.

        Returns:
            PullResult.
        """
        options = options or PullOptions()
        if not settings.is_valid:
            logger.info("Pull rejected: settings invalid")
            return PullResult.failure(FailureReason.SETTINGS_INVALID)

        logger.info(f"Pull of {options.world.value} from {settings.repo_name}@{settings.branch}")
        async with self._client_factory(settings) as client:
            fetcher = PriorityPullFetcher(
                client, settings, max_concurrent=self._max_concurrent_fetches
            )
            return await fetcher.pull(options)

    async def check_stale_status(
        self,
        settings: Settings,
        last_known_commit_sha: str | None,
    ) -> StaleCheckResult:
        """Compare the remote HEAD with the last commit seen locally.

        Args:
            settings: Settings snapshot.
            last_known_commit_sha: Commit SHA recorded after the last
                successful push or pull, if any.

        Returns:
            Stale, UpToDate or CheckFailed. An empty repository and an
            unknown local commit are both treated as up to date.
        """
        if not settings.is_valid:
            return CheckFailed(reason=FailureReason.SETTINGS_INVALID)

        async with self._client_factory(settings) as client:
            head = await StalenessOracle(client, settings).fetch_head()

        if head.status == FailureReason.EMPTY_REPOSITORY:
            return UpToDate()
        if not head.ok:
            return CheckFailed(reason=FailureReason(head.status))

        result = decide_staleness(head.commit_sha, last_known_commit_sha)
        logger.debug(
            f"Stale check: remote={head.commit_sha} local={last_known_commit_sha} -> {result.status}"
        )
        return result
