"""Sync commands for the leafsync CLI.

Commands:
- status: Compare the cached commit with the remote HEAD
- pull: Download notes and replace the local cache
- push: Upload the local cache as one commit
"""

from __future__ import annotations

import asyncio
import sys
from typing import NoReturn

import click

from leafsync.client.cli.config import load_settings, open_cache
from leafsync.client.sync import (
    FAILURE_MESSAGES,
    ArchiveData,
    CheckFailed,
    PullOptions,
    PullProgress,
    Stale,
    SyncCoordinator,
)
from leafsync.core.config import Settings
from leafsync.core.types import PullPriority, RateLimitInfo, World

# Human-readable text for result message keys
MESSAGES: dict[str, str] = {
    "toast.pushSuccess": "Pushed",
    "toast.noChanges": "No changes to push",
    "toast.pullSuccess": "Pulled",
    "toast.pullEmpty": "Remote repository is empty",
    "toast.pushFailed": "Push is locked until the first pull completes",
    "toast.noLeaves": "Nothing to push",
    "toast.pushInProgress": "Another push is in progress",
    "toast.settingsInvalid": "Token and repository are not configured, run 'leafsync config'",
    "toast.authError": "Authentication failed, check your token",
    "toast.networkError": "Network error, try again",
    "toast.remoteChanged": "Remote has changed, run 'leafsync pull' first",
    "toast.rateLimited": "GitHub rate limit reached, try again later",
    "toast.syncError": "Sync failed",
}


def describe(message: str) -> str:
    """Translate a result message key for display."""
    return MESSAGES.get(message, message)


class ProgressLine:
    """Single-line pull progress display on stdout."""

    def __init__(self, enabled: bool = True, width: int = 80) -> None:
        self._enabled = enabled
        self._width = width
        self._last_len = 0

    def update(self, progress: PullProgress) -> None:
        """Redraw the line for a progress event."""
        if not self._enabled:
            return
        line = f"  Pulling [{progress.fetched}/{progress.total}] {progress.path}"
        if len(line) > self._width - 3:
            line = line[: self._width - 6] + "..."
        padding = " " * max(0, self._last_len - len(line))
        sys.stdout.write(f"\r{line}{padding}")
        sys.stdout.flush()
        self._last_len = len(line)

    def finish(self) -> None:
        """Clear the line."""
        if self._enabled and self._last_len > 0:
            sys.stdout.write("\r" + " " * self._last_len + "\r")
            sys.stdout.flush()
            self._last_len = 0


def _fail(message: str, rate_limit: RateLimitInfo | None = None) -> NoReturn:
    click.echo(f"Error: {describe(message)}", err=True)
    if rate_limit is not None and rate_limit.is_low:
        click.echo(
            f"Rate limit: {rate_limit.remaining}/{rate_limit.limit} remaining", err=True
        )
    sys.exit(1)


def _require_settings() -> Settings:
    settings = load_settings()
    if not settings.is_valid:
        _fail("toast.settingsInvalid")
    return settings


@click.command()
def status() -> None:
    """Check whether the remote has commits not pulled yet."""
    settings = _require_settings()

    cache = open_cache()
    try:
        last_commit_sha = cache.get_last_commit_sha()
    finally:
        cache.close()

    result = asyncio.run(SyncCoordinator().check_stale_status(settings, last_commit_sha))

    if isinstance(result, CheckFailed):
        _fail(FAILURE_MESSAGES[result.reason])
    elif isinstance(result, Stale):
        click.echo(
            f"Remote has new commits: {result.remote_commit_sha[:7]} "
            f"(local {result.local_commit_sha[:7]}). Run 'leafsync pull'."
        )
    elif last_commit_sha:
        click.echo(f"Up to date at {last_commit_sha[:7]}.")
    else:
        click.echo("Up to date.")


@click.command()
@click.option("--archive", is_flag=True, help="Pull the archive instead of the home notes.")
@click.option(
    "--priority",
    "priority_paths",
    multiple=True,
    help="Leaf path to download first (repeatable).",
)
@click.option("--no-progress", is_flag=True, help="Disable the progress line.")
def pull(archive: bool, priority_paths: tuple[str, ...], no_progress: bool) -> None:
    """Download notes and replace the local cache.

    The cached notes and leaves of the pulled world are replaced entirely.
    """
    settings = _require_settings()
    world = World.ARCHIVE if archive else World.HOME

    progress = ProgressLine(enabled=not no_progress)
    options = PullOptions(
        priority=PullPriority(leaf_paths=list(priority_paths)) if priority_paths else None,
        on_progress=progress.update,
        world=world,
    )
    try:
        result = asyncio.run(SyncCoordinator().execute_pull(settings, options))
    finally:
        progress.finish()

    if not result.success:
        _fail(result.message, result.rate_limit)

    cache = open_cache()
    try:
        cache.replace_all(world, result.notes, result.leaves)
        cache.set_metadata(world, result.metadata)
        # The archive does not describe the home state a push is based on
        if world == World.HOME:
            if result.commit_sha:
                cache.set_last_commit_sha(result.commit_sha)
            cache.mark_initial_pull_complete()
    finally:
        cache.close()

    click.echo(
        f"{describe(result.message)}: {len(result.notes)} notes, {len(result.leaves)} leaves"
    )
    if result.commit_sha:
        click.echo(f"At commit {result.commit_sha[:7]}")


@click.command()
@click.option(
    "--archive/--no-archive",
    default=False,
    help="Include the cached archive in the push.",
)
@click.option("--force", is_flag=True, help="Push even if the remote has unpulled commits.")
def push(archive: bool, force: bool) -> None:
    """Upload the local cache as one commit.

    Refuses when the remote has commits that were not pulled, unless
    --force is given and confirmed.
    """
    settings = _require_settings()
    coordinator = SyncCoordinator()

    cache = open_cache()
    try:
        last_commit_sha = cache.get_last_commit_sha()

        stale = asyncio.run(coordinator.check_stale_status(settings, last_commit_sha))
        if isinstance(stale, CheckFailed):
            _fail(FAILURE_MESSAGES[stale.reason])
        if isinstance(stale, Stale):
            if not force:
                _fail("toast.remoteChanged")
            click.confirm(
                f"Remote is at {stale.remote_commit_sha[:7]}, local changes will "
                "overwrite it. Push anyway?",
                abort=True,
            )

        archive_data = None
        if archive:
            archive_data = ArchiveData(
                notes=cache.load_notes(World.ARCHIVE),
                leaves=cache.load_leaves(World.ARCHIVE),
                metadata=cache.get_metadata(World.ARCHIVE),
            )

        result = asyncio.run(
            coordinator.execute_push(
                cache.load_leaves(World.HOME),
                cache.load_notes(World.HOME),
                settings,
                operations_locked=not cache.is_initial_pull_complete(),
                archive=archive_data,
                metadata=cache.get_metadata(World.HOME),
            )
        )

        if not result.success:
            _fail(result.message, result.rate_limit)
        if result.commit_sha:
            cache.set_last_commit_sha(result.commit_sha)
    finally:
        cache.close()

    if result.metadata_only_changed:
        click.echo(f"{describe(result.message)}: metadata only")
    elif result.changed_leaf_count:
        click.echo(f"{describe(result.message)}: {result.changed_leaf_count} leaves changed")
    else:
        click.echo(describe(result.message))
    if result.commit_sha:
        click.echo(f"At commit {result.commit_sha[:7]}")
