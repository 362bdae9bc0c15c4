"""Shared fixtures for sync engine tests.

FakeGitHub is an in-memory stand-in for GitHubClient: it keeps blobs,
trees, commits and one branch ref, and records every call so tests can
assert on the call sequence. Like GitHub, it rejects git-data writes with 409
until the repository holds at least one commit.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
from collections.abc import Awaitable, Callable
from typing import Any

import pytest

from leafsync.client.api import (
    BLOB_MODE,
    ConflictError,
    NotFoundError,
    RefConflictError,
    TreeEntry,
    TreeListing,
)
from leafsync.client.sync.domain.changes import git_blob_sha
from leafsync.core.config import Settings
from leafsync.core.types import RateLimitInfo


class FakeGitHub:
    """In-memory git-data remote with the GitHubClient interface."""

    def __init__(self, branch: str = "main") -> None:
        self.branch = branch
        self.blobs: dict[str, str] = {}
        self.trees: dict[str, dict[str, str]] = {}  # tree sha -> {path: blob sha}
        self.commits: dict[str, tuple[str, list[str]]] = {}  # sha -> (tree, parents)
        self.ref: str | None = None
        self.calls: list[str] = []
        self.rate_limit: RateLimitInfo | None = RateLimitInfo(
            limit=5000, remaining=4999, reset=1700000000, used=1
        )

        # Failure injection: method name -> exception raised on call
        self.errors: dict[str, Exception] = {}
        # Blob sha -> exception raised when that blob is fetched
        self.blob_errors: dict[str, Exception] = {}
        # Blob sha -> seconds to wait before returning the blob
        self.blob_delays: dict[str, float] = {}
        # Method name -> coroutine run before the method body
        self.hooks: dict[str, Callable[[], Awaitable[None]]] = {}
        self.truncated = False
        self.closed = False

    # === Test helpers ===

    def seed(self, files: dict[str, str], message: str = "seed") -> str:
        """Commit files on top of the current ref and move the ref."""
        tree_sha = self._store_tree({path: self._store_blob(c) for path, c in files.items()})
        parents = [self.ref] if self.ref else []
        commit_sha = self._store_commit(tree_sha, parents, message)
        self.ref = commit_sha
        return commit_sha

    def head_files(self) -> dict[str, str]:
        """Path -> content of the tree at the current ref."""
        if self.ref is None:
            return {}
        tree_sha, _ = self.commits[self.ref]
        return {path: self.blobs[sha] for path, sha in self.trees[tree_sha].items()}

    def commit_count(self) -> int:
        return len(self.commits)

    def _store_blob(self, content: str) -> str:
        sha = git_blob_sha(content)
        self.blobs[sha] = content
        return sha

    def _store_tree(self, files: dict[str, str]) -> str:
        encoded = json.dumps(sorted(files.items())).encode()
        sha = hashlib.sha1(b"tree " + encoded).hexdigest()
        self.trees[sha] = dict(files)
        return sha

    def _store_commit(self, tree_sha: str, parents: list[str], message: str) -> str:
        encoded = json.dumps([tree_sha, parents, message, len(self.commits)]).encode()
        sha = hashlib.sha1(b"commit " + encoded).hexdigest()
        self.commits[sha] = (tree_sha, list(parents))
        return sha

    def _require_history(self) -> None:
        if not self.commits:
            raise ConflictError("Git Repository is empty.", 409)

    async def _enter(self, name: str) -> None:
        self.calls.append(name)
        hook = self.hooks.pop(name, None)
        if hook is not None:
            await hook()
        if name in self.errors:
            raise self.errors[name]

    # === GitHubClient interface ===

    async def __aenter__(self) -> FakeGitHub:
        return self

    async def __aexit__(self, *args: object) -> None:
        self.closed = True

    async def close(self) -> None:
        self.closed = True

    async def get_ref(self, branch: str) -> str | None:
        await self._enter("get_ref")
        return self.ref

    async def update_ref(self, branch: str, commit_sha: str) -> None:
        await self._enter("update_ref")
        _, parents = self.commits[commit_sha]
        if self.ref not in parents:
            raise RefConflictError("Update is not a fast forward", 422)
        self.ref = commit_sha

    async def create_ref(self, branch: str, commit_sha: str) -> None:
        await self._enter("create_ref")
        if self.ref is not None:
            raise RefConflictError("Reference already exists", 422)
        self.ref = commit_sha

    async def get_commit_tree(self, commit_sha: str) -> str:
        await self._enter("get_commit_tree")
        if commit_sha not in self.commits:
            raise NotFoundError("Not Found", 404)
        return self.commits[commit_sha][0]

    async def create_commit(
        self,
        message: str,
        tree_sha: str,
        parents: list[str],
        author_name: str,
        author_email: str,
    ) -> str:
        await self._enter("create_commit")
        self._require_history()
        return self._store_commit(tree_sha, parents, message)

    async def get_tree(self, tree_sha: str, recursive: bool = True) -> TreeListing:
        await self._enter("get_tree")
        files = self.trees[tree_sha]
        dirs: set[str] = set()
        for path in files:
            parts = path.split("/")[:-1]
            for i in range(1, len(parts) + 1):
                dirs.add("/".join(parts[:i]))
        entries = [TreeEntry(path=d, mode="040000", type="tree", sha=f"tree-{d}") for d in dirs]
        entries += [
            TreeEntry(path=p, mode=BLOB_MODE, type="blob", sha=s, size=len(self.blobs[s]))
            for p, s in files.items()
        ]
        entries.sort(key=lambda e: e.path)
        return TreeListing(sha=tree_sha, entries=entries, truncated=self.truncated)

    async def create_tree(self, entries: list[dict[str, Any]]) -> str:
        await self._enter("create_tree")
        self._require_history()
        files: dict[str, str] = {}
        for entry in entries:
            if "content" in entry:
                files[entry["path"]] = self._store_blob(entry["content"])
            else:
                files[entry["path"]] = entry["sha"]
        return self._store_tree(files)

    async def get_blob(self, blob_sha: str) -> str:
        await self._enter("get_blob")
        delay = self.blob_delays.get(blob_sha)
        if delay:
            await asyncio.sleep(delay)
        if blob_sha in self.blob_errors:
            raise self.blob_errors[blob_sha]
        return self.blobs[blob_sha]

    async def put_file(
        self,
        path: str,
        content: str,
        message: str,
        author_name: str,
        author_email: str,
    ) -> str:
        await self._enter("put_file")
        files = dict(self.trees[self.commits[self.ref][0]]) if self.ref else {}
        files[path] = self._store_blob(content)
        parents = [self.ref] if self.ref else []
        commit_sha = self._store_commit(self._store_tree(files), parents, message)
        self.ref = commit_sha
        return commit_sha

    async def fetch_file_sha(self, path: str) -> str | None:
        await self._enter("fetch_file_sha")
        if self.ref is None:
            return None
        return self.trees[self.commits[self.ref][0]].get(path)


@pytest.fixture
def settings() -> Settings:
    """Valid settings for the fake remote."""
    return Settings(
        token="ghp_test",
        repo_name="owner/notes",
        username="Tester",
        email="tester@example.com",
    )


@pytest.fixture
def remote() -> FakeGitHub:
    """Empty in-memory remote."""
    return FakeGitHub()
