"""Push engine: one atomic commit per push.

This module provides:
- build_snapshot: Desired path -> content map for one world
- CommitBuilder: Turns the complete desired state into a single commit

The whole tracked namespace is rebuilt on every push. The tree is created
from the full list of tracked files without a base tree, so a path that is
no longer listed (deleted leaf, renamed note) simply disappears from the
new commit. The base tree is only read to count changes and to carry over
files outside the tracked namespaces.

Call sequence (bounded, independent of corpus size):
    get-ref -> get-commit -> get-tree -> create-tree -> create-commit
    -> update-ref (create-ref for the first commit of a new branch)

A repository without any commit rejects git-data writes, so its first
push seeds the metadata file through the contents API and then runs the
regular sequence on top of that commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from leafsync.client.api import (
    BLOB_MODE,
    APIError,
    ConflictError,
    RefConflictError,
    TreeEntry,
)
from leafsync.client.sync.domain.changes import summarize_changes
from leafsync.client.sync.errors import classify_error
from leafsync.client.sync.paths import (
    FOLDER_MARKER,
    encode_name,
    is_note_saveable,
    is_under_namespace,
    leaf_parts,
    leaf_path,
    metadata_path,
    note_dir_path,
    note_relative_path,
)
from leafsync.client.sync.staleness import StalenessOracle
from leafsync.client.sync.types import (
    PUSH_NO_CHANGES,
    PUSH_SUCCESS,
    ArchiveData,
    FailureReason,
    PushResult,
    Variant,
)
from leafsync.core.types import (
    Leaf,
    LeafMeta,
    Metadata,
    Note,
    NoteMeta,
    World,
)

if TYPE_CHECKING:
    from leafsync.client.api import GitHubClient
    from leafsync.core.config import Settings

logger = logging.getLogger(__name__)

COMMIT_MESSAGE = "auto-sync"


@dataclass
class WorldSnapshot:
    """Desired content of one world namespace.

    Attributes:
        world: World the snapshot belongs to.
        leaf_files: Leaf path -> markdown content.
        marker_files: Note folder marker paths (empty files).
        metadata: Metadata describing the snapshot.
    """

    world: World
    leaf_files: dict[str, str] = field(default_factory=dict)
    marker_files: list[str] = field(default_factory=list)
    metadata: Metadata = field(default_factory=Metadata)

    @property
    def metadata_file(self) -> tuple[str, str]:
        """(path, content) of the metadata file."""
        return metadata_path(self.world), self.metadata.to_json()

    def files(self) -> dict[str, str]:
        """All tracked files of the world, path -> content."""
        result = {path: "" for path in self.marker_files}
        result.update(self.leaf_files)
        path, content = self.metadata_file
        result[path] = content
        return result


def build_snapshot(
    world: World,
    notes: list[Note],
    leaves: list[Leaf],
    base_metadata: Metadata | None = None,
) -> WorldSnapshot:
    """Compute the complete desired file set of a world.

    Virtual notes and leaves without a saveable note are skipped. When two
    leaves map to the same path the later one wins.

    Args:
        world: World being written.
        notes: All notes of the world.
        leaves: All leaves of the world.
        base_metadata: Local metadata; only world-level fields (priority
            badge) are taken from it, per-path entries are regenerated.

    Returns:
        WorldSnapshot for the world.
    """
    notes_by_id = {n.id: n for n in notes if is_note_saveable(n)}
    snapshot = WorldSnapshot(world=world)
    if base_metadata is not None:
        snapshot.metadata.priority_badge_icon = base_metadata.priority_badge_icon
        snapshot.metadata.priority_badge_color = base_metadata.priority_badge_color

    for note in notes_by_id.values():
        if "/" in note.name:
            logger.warning(
                f"Note name {note.name!r} contains '/', stored as {encode_name(note.name)!r}"
            )
        snapshot.marker_files.append(
            f"{note_dir_path(note, notes_by_id, world)}/{FOLDER_MARKER}"
        )
        snapshot.metadata.notes[note_relative_path(note, notes_by_id)] = NoteMeta(
            id=note.id, order=note.order
        )

    for leaf in leaves:
        path = leaf_path(leaf, notes_by_id, world)
        if path is None:
            logger.debug(f"Skipping local-only leaf {leaf.id} ({leaf.title!r})")
            continue
        if "/" in leaf.title:
            logger.warning(
                f"Leaf title {leaf.title!r} contains '/', stored as {encode_name(leaf.title)!r}"
            )
        if path in snapshot.leaf_files:
            logger.warning(f"Duplicate leaf path {path}, keeping leaf {leaf.id}")
        snapshot.leaf_files[path] = leaf.content
        # Metadata keys are relative to the namespace
        relative = path.split("/", 1)[1]
        snapshot.metadata.leaves[relative] = LeafMeta(
            id=leaf.id,
            order=leaf.order,
            updated_at=leaf.updated_at,
            badge_icon=leaf.badge_icon,
            badge_color=leaf.badge_color,
        )

    return snapshot


class CommitBuilder:
    """Converts a complete desired state into exactly one commit.

    Usage:
        async with GitHubClient(settings) as client:
            builder = CommitBuilder(client, settings)
            result = await builder.push(leaves, notes)
    """

    def __init__(
        self,
        client: GitHubClient,
        settings: Settings,
        oracle: StalenessOracle | None = None,
    ) -> None:
        """Initialize the builder.

        Args:
            client: HTTP client bound to the repository.
            settings: Branch and committer settings.
            oracle: HEAD resolver; created from client and settings if omitted.
        """
        self._client = client
        self._settings = settings
        self._oracle = oracle or StalenessOracle(client, settings)

    async def push(
        self,
        leaves: list[Leaf],
        notes: list[Note],
        metadata: Metadata | None = None,
        archive: ArchiveData | None = None,
    ) -> PushResult:
        """Push the complete desired state as one commit.

        Args:
            leaves: All home leaves.
            notes: All home notes.
            metadata: Local home metadata (world-level fields are kept).
            archive: Archive state; None leaves the remote archive untouched.

        Returns:
            PushResult. Either one complete commit landed or nothing changed
            remotely. Never raises.
        """
        head = await self._oracle.fetch_head()
        if not head.ok and head.status != FailureReason.EMPTY_REPOSITORY:
            return PushResult.failure(FailureReason(head.status), head.rate_limit)

        snapshots = [build_snapshot(World.HOME, notes, leaves, metadata)]
        if archive is not None:
            snapshots.append(
                build_snapshot(World.ARCHIVE, archive.notes, archive.leaves, archive.metadata)
            )

        try:
            if head.commit_sha is None:
                return await self._initial_commit(snapshots)
            return await self._commit(snapshots, head.commit_sha)
        except Exception as e:
            reason = classify_error(e)
            if reason == FailureReason.CONFLICT:
                logger.warning(
                    f"Branch {self._settings.branch} moved since {head.commit_sha}; pull first"
                )
            else:
                logger.error(f"Push failed: {e}")
            return PushResult.failure(reason, self._client.rate_limit)

    async def _initial_commit(self, snapshots: list[WorldSnapshot]) -> PushResult:
        """Create the first commit of the branch.

        A branch missing from a repository with history gets a parentless
        commit and a new ref. A repository without any commit answers 409 to
        every git-data write, so there the metadata file is created through
        the contents API first and the regular chain runs on top of it.
        """
        try:
            return await self._commit(snapshots, None)
        except ConflictError as e:
            if isinstance(e, RefConflictError):
                raise
            logger.info(f"Repository has no commits ({e}), creating the first one")

        path, content = snapshots[0].metadata_file
        await self._client.put_file(
            path,
            content,
            message=COMMIT_MESSAGE,
            author_name=self._settings.committer_name,
            author_email=self._settings.committer_email,
        )
        head = await self._oracle.fetch_head()
        if head.commit_sha is None:
            reason = (
                FailureReason.API_ERROR
                if head.status == FailureReason.EMPTY_REPOSITORY
                else FailureReason(head.status)
            )
            return PushResult.failure(reason, head.rate_limit)
        return await self._commit(snapshots, head.commit_sha)

    async def _commit(
        self,
        snapshots: list[WorldSnapshot],
        parent_sha: str | None,
    ) -> PushResult:
        """Run the tree -> commit -> ref chain on top of parent_sha."""
        worlds = [s.world for s in snapshots]
        base_tree_sha: str | None = None
        existing: dict[str, TreeEntry] = {}

        if parent_sha is not None:
            base_tree_sha = await self._client.get_commit_tree(parent_sha)
            listing = await self._client.get_tree(base_tree_sha)
            if listing.truncated:
                # Untracked files could not all be carried over
                raise APIError(f"Tree listing of {base_tree_sha} is truncated")
            existing = {e.path: e for e in listing.entries if e.type != "tree"}

        entries: list[dict[str, Any]] = []
        desired_leaves: dict[str, str] = {}
        desired_metadata: dict[str, str] = {}
        for snapshot in snapshots:
            for path, content in sorted(snapshot.files().items()):
                entries.append(
                    {"path": path, "mode": BLOB_MODE, "type": "blob", "content": content}
                )
            desired_leaves.update(snapshot.leaf_files)
            path, content = snapshot.metadata_file
            desired_metadata[path] = content

        existing_leaves: dict[str, str] = {}
        existing_metadata: dict[str, str] = {}
        carried = 0
        for path, entry in existing.items():
            world = next((w for w in worlds if is_under_namespace(path, w)), None)
            if world is None:
                entries.append(
                    {"path": path, "mode": entry.mode, "type": entry.type, "sha": entry.sha}
                )
                carried += 1
            elif path == metadata_path(world):
                existing_metadata[path] = entry.sha
            elif leaf_parts(path, world) is not None:
                existing_leaves[path] = entry.sha

        changes = summarize_changes(
            desired_leaves, existing_leaves, desired_metadata, existing_metadata
        )
        logger.info(
            f"Pushing {len(desired_leaves)} leaves "
            f"({len(changes.added)} added, {len(changes.modified)} modified, "
            f"{len(changes.removed)} removed, {carried} untracked kept)"
        )

        tree_sha = await self._client.create_tree(entries)
        if tree_sha == base_tree_sha:
            logger.info("Tree unchanged, nothing to commit")
            return PushResult(
                success=True,
                message=PUSH_NO_CHANGES,
                variant=Variant.SUCCESS,
                rate_limit=self._client.rate_limit,
                changed_leaf_count=0,
                metadata_only_changed=False,
                commit_sha=parent_sha,
            )

        parents = [parent_sha] if parent_sha else []
        commit_sha = await self._client.create_commit(
            message=COMMIT_MESSAGE,
            tree_sha=tree_sha,
            parents=parents,
            author_name=self._settings.committer_name,
            author_email=self._settings.committer_email,
        )

        if parent_sha is None:
            await self._client.create_ref(self._settings.branch, commit_sha)
        else:
            await self._client.update_ref(self._settings.branch, commit_sha)

        logger.info(f"Pushed commit {commit_sha} to {self._settings.branch}")
        return PushResult(
            success=True,
            message=PUSH_SUCCESS,
            variant=Variant.SUCCESS,
            rate_limit=self._client.rate_limit,
            changed_leaf_count=changes.changed_leaf_count,
            metadata_only_changed=changes.metadata_only_changed,
            commit_sha=commit_sha,
        )
