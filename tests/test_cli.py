"""Tests for CLI commands - config, status, pull, push."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from click.testing import CliRunner

from leafsync.client.api import GitHubClient
from leafsync.client.cli import cli
from leafsync.client.state import LocalCache
from leafsync.client.sync.coordinator import SyncCoordinator
from leafsync.client.sync.types import (
    PULL_SUCCESS,
    PUSH_SUCCESS,
    CheckFailed,
    FailureReason,
    PullResult,
    PushResult,
    Stale,
    UpToDate,
    Variant,
)
from leafsync.core.types import Leaf, Note, PullPriority, World


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_dir(tmp_path: Path) -> Iterator[Path]:
    """Point the CLI at a temporary config directory."""
    with patch("leafsync.client.cli.config.get_config_dir", return_value=tmp_path):
        yield tmp_path


@pytest.fixture
def configured(config_dir: Path) -> Path:
    """Config directory with valid settings."""
    (config_dir / "config.json").write_text(
        json.dumps({"token": "ghp_secret1234", "repo_name": "owner/notes"})
    )
    return config_dir


@pytest.fixture
def coordinator() -> Iterator[MagicMock]:
    """Replace the sync coordinator used by the CLI."""
    instance = MagicMock()
    instance.check_stale_status = AsyncMock(return_value=UpToDate())
    instance.execute_pull = AsyncMock()
    instance.execute_push = AsyncMock()
    with patch("leafsync.client.cli.sync.SyncCoordinator", return_value=instance):
        yield instance


def open_cache(config_dir: Path) -> LocalCache:
    return LocalCache(config_dir / "cache.db")


def pulled_result() -> PullResult:
    return PullResult(
        success=True,
        message=PULL_SUCCESS,
        variant=Variant.SUCCESS,
        notes=[Note(id="n1", name="Work")],
        leaves=[Leaf(id="l1", note_id="n1", title="Plan", content="plan", updated_at=1)],
        commit_sha="c0ffee1234",
    )


class TestConfigCommand:
    """Tests for 'leafsync config' command."""

    def test_show_unconfigured(self, runner: CliRunner, config_dir: Path) -> None:
        """Should show defaults and warn when incomplete."""
        result = runner.invoke(cli, ["config"])
        assert result.exit_code == 0
        assert "(not set)" in result.output
        assert "Branch:     main" in result.output

    def test_saves_values(self, runner: CliRunner, config_dir: Path) -> None:
        """Should persist given options and mask the token."""
        result = runner.invoke(
            cli, ["config", "--token", "ghp_secret1234", "--repo", "owner/notes"]
        )

        assert result.exit_code == 0
        assert "ghp_secret1234" not in result.output
        assert "1234" in result.output
        stored = json.loads((config_dir / "config.json").read_text())
        assert stored["token"] == "ghp_secret1234"
        assert stored["repo_name"] == "owner/notes"
        assert stored["branch"] == "main"

    def test_keeps_existing_values(self, runner: CliRunner, configured: Path) -> None:
        """Updating one option keeps the others."""
        result = runner.invoke(cli, ["config", "--branch", "notes"])

        assert result.exit_code == 0
        stored = json.loads((configured / "config.json").read_text())
        assert stored["branch"] == "notes"
        assert stored["token"] == "ghp_secret1234"


class TestStatusCommand:
    """Tests for 'leafsync status' command."""

    def test_requires_settings(
        self, runner: CliRunner, config_dir: Path, coordinator: MagicMock
    ) -> None:
        """Should fail when token or repository are missing."""
        result = runner.invoke(cli, ["status"])
        assert result.exit_code == 1
        assert "not configured" in result.output
        coordinator.check_stale_status.assert_not_called()

    def test_stale(self, runner: CliRunner, configured: Path, coordinator: MagicMock) -> None:
        """Should report unpulled remote commits."""
        cache = open_cache(configured)
        cache.set_last_commit_sha("aaaaaaa111")
        cache.close()
        coordinator.check_stale_status.return_value = Stale(
            remote_commit_sha="bbbbbbb222", local_commit_sha="aaaaaaa111"
        )

        result = runner.invoke(cli, ["status"])

        assert result.exit_code == 0
        assert "bbbbbbb" in result.output
        assert coordinator.check_stale_status.call_args.args[1] == "aaaaaaa111"

    def test_up_to_date(self, runner: CliRunner, configured: Path, coordinator: MagicMock) -> None:
        """Should report an up-to-date cache."""
        result = runner.invoke(cli, ["status"])
        assert result.exit_code == 0
        assert "Up to date" in result.output

    def test_check_failed(
        self, runner: CliRunner, configured: Path, coordinator: MagicMock
    ) -> None:
        """Should exit with an error message on failure."""
        coordinator.check_stale_status.return_value = CheckFailed(
            reason=FailureReason.AUTH_ERROR
        )

        result = runner.invoke(cli, ["status"])

        assert result.exit_code == 1
        assert "Authentication failed" in result.output


class TestPullCommand:
    """Tests for 'leafsync pull' command."""

    def test_replaces_cache(
        self, runner: CliRunner, configured: Path, coordinator: MagicMock
    ) -> None:
        """Should store pulled notes and record the commit."""
        coordinator.execute_pull.return_value = pulled_result()

        result = runner.invoke(cli, ["pull", "--no-progress"])

        assert result.exit_code == 0
        assert "1 notes, 1 leaves" in result.output
        cache = open_cache(configured)
        try:
            assert [leaf.id for leaf in cache.load_leaves(World.HOME)] == ["l1"]
            assert cache.get_last_commit_sha() == "c0ffee1234"
            assert cache.is_initial_pull_complete()
        finally:
            cache.close()

    def test_passes_options(
        self, runner: CliRunner, configured: Path, coordinator: MagicMock
    ) -> None:
        """Priority paths and world are forwarded to the pull."""
        coordinator.execute_pull.return_value = pulled_result()

        runner.invoke(cli, ["pull", "--archive", "--priority", "A/x.md", "--priority", "B/y.md"])

        options = coordinator.execute_pull.call_args.args[1]
        assert options.world == World.ARCHIVE
        assert options.priority == PullPriority(leaf_paths=["A/x.md", "B/y.md"])

    def test_archive_does_not_record_commit(
        self, runner: CliRunner, configured: Path, coordinator: MagicMock
    ) -> None:
        """Only home pulls move the recorded commit."""
        coordinator.execute_pull.return_value = pulled_result()

        runner.invoke(cli, ["pull", "--archive", "--no-progress"])

        cache = open_cache(configured)
        try:
            assert cache.get_last_commit_sha() is None
            assert len(cache.load_leaves(World.ARCHIVE)) == 1
        finally:
            cache.close()

    def test_failure(self, runner: CliRunner, configured: Path, coordinator: MagicMock) -> None:
        """Should exit with an error and leave the cache alone."""
        coordinator.execute_pull.return_value = PullResult.failure(FailureReason.NETWORK_ERROR)

        result = runner.invoke(cli, ["pull", "--no-progress"])

        assert result.exit_code == 1
        assert "Network error" in result.output
        assert not (configured / "cache.db").exists()


class TestPushCommand:
    """Tests for 'leafsync push' command."""

    def _seed_cache(self, config_dir: Path) -> None:
        cache = open_cache(config_dir)
        cache.replace_all(World.HOME, pulled_result().notes, pulled_result().leaves)
        cache.set_last_commit_sha("c0ffee1234")
        cache.mark_initial_pull_complete()
        cache.close()

    def test_pushes_and_records_commit(
        self, runner: CliRunner, configured: Path, coordinator: MagicMock
    ) -> None:
        """Should push cached leaves and record the new commit."""
        self._seed_cache(configured)
        coordinator.execute_push.return_value = PushResult(
            success=True,
            message=PUSH_SUCCESS,
            variant=Variant.SUCCESS,
            changed_leaf_count=1,
            metadata_only_changed=False,
            commit_sha="deadbeef99",
        )

        result = runner.invoke(cli, ["push"])

        assert result.exit_code == 0
        assert "1 leaves changed" in result.output
        call = coordinator.execute_push.call_args
        assert [leaf.id for leaf in call.args[0]] == ["l1"]
        assert call.kwargs["operations_locked"] is False
        assert call.kwargs["archive"] is None
        cache = open_cache(configured)
        try:
            assert cache.get_last_commit_sha() == "deadbeef99"
        finally:
            cache.close()

    def test_locked_before_first_pull(
        self, runner: CliRunner, configured: Path, coordinator: MagicMock
    ) -> None:
        """Pushes are locked until a pull has completed."""
        coordinator.execute_push.return_value = PushResult.failure(FailureReason.LOCKED)

        result = runner.invoke(cli, ["push"])

        assert result.exit_code == 1
        assert coordinator.execute_push.call_args.kwargs["operations_locked"] is True

    def test_refuses_when_stale(
        self, runner: CliRunner, configured: Path, coordinator: MagicMock
    ) -> None:
        """Should refuse to overwrite unpulled remote commits."""
        self._seed_cache(configured)
        coordinator.check_stale_status.return_value = Stale(
            remote_commit_sha="bbbbbbb222", local_commit_sha="c0ffee1234"
        )

        result = runner.invoke(cli, ["push"])

        assert result.exit_code == 1
        assert "pull" in result.output
        coordinator.execute_push.assert_not_called()

    def test_force_after_confirmation(
        self, runner: CliRunner, configured: Path, coordinator: MagicMock
    ) -> None:
        """--force pushes over a stale remote once confirmed."""
        self._seed_cache(configured)
        coordinator.check_stale_status.return_value = Stale(
            remote_commit_sha="bbbbbbb222", local_commit_sha="c0ffee1234"
        )
        coordinator.execute_push.return_value = PushResult(
            success=True, message=PUSH_SUCCESS, variant=Variant.SUCCESS, commit_sha="f00d"
        )

        result = runner.invoke(cli, ["push", "--force"], input="y\n")

        assert result.exit_code == 0
        coordinator.execute_push.assert_called_once()

    def test_force_declined(
        self, runner: CliRunner, configured: Path, coordinator: MagicMock
    ) -> None:
        """Declining the confirmation aborts the push."""
        self._seed_cache(configured)
        coordinator.check_stale_status.return_value = Stale(
            remote_commit_sha="bbbbbbb222", local_commit_sha="c0ffee1234"
        )

        result = runner.invoke(cli, ["push", "--force"], input="n\n")

        assert result.exit_code != 0
        coordinator.execute_push.assert_not_called()

    def test_includes_archive(
        self, runner: CliRunner, configured: Path, coordinator: MagicMock
    ) -> None:
        """--archive sends the cached archive along."""
        self._seed_cache(configured)
        coordinator.execute_push.return_value = PushResult(
            success=True, message=PUSH_SUCCESS, variant=Variant.SUCCESS, commit_sha="f00d"
        )

        runner.invoke(cli, ["push", "--archive"])

        archive = coordinator.execute_push.call_args.kwargs["archive"]
        assert archive is not None
        assert archive.notes == []


class TestLogging:
    """Tests for the --verbose group option."""

    def test_verbose_enables_debug(
        self, runner: CliRunner, config_dir: Path
    ) -> None:
        """--verbose sets the leafsync logger to DEBUG."""
        runner.invoke(cli, ["--verbose", "config"])
        assert logging.getLogger("leafsync").level == logging.DEBUG

        runner.invoke(cli, ["config"])
        assert logging.getLogger("leafsync").level == logging.WARNING


class TestMissingRepository:
    """A mistyped repository must not wipe the local cache."""

    def test_pull_keeps_cache(self, runner: CliRunner, configured: Path) -> None:
        """Pulling from a repository that answers 404 leaves the cache as it was."""
        cache = open_cache(configured)
        cache.replace_all(World.HOME, pulled_result().notes, pulled_result().leaves)
        cache.set_last_commit_sha("c0ffee1234")
        cache.close()
        transport = httpx.MockTransport(
            lambda request: httpx.Response(404, json={"message": "Not Found"})
        )
        coordinator = SyncCoordinator(
            client_factory=lambda settings: GitHubClient(settings, transport=transport)
        )

        with patch("leafsync.client.cli.sync.SyncCoordinator", return_value=coordinator):
            result = runner.invoke(cli, ["pull", "--no-progress"])

        assert result.exit_code == 1
        cache = open_cache(configured)
        try:
            assert [leaf.id for leaf in cache.load_leaves(World.HOME)] == ["l1"]
            assert cache.get_last_commit_sha() == "c0ffee1234"
        finally:
            cache.close()
