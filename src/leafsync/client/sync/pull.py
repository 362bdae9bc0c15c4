"""Pull engine: priority-ordered download of the remote snapshot.

This module provides:
- Manifest: Note folders, leaf files and metadata of one world
- PriorityPullFetcher: Downloads the manifest, then leaf blobs in priority
  order with progress reporting, and assembles Note/Leaf records

Flow:
    get-ref -> get-commit -> get-tree (recursive manifest) -> metadata blob
    -> priority leaf blobs -> remaining leaf blobs

Progress is observational only: the result is returned once, complete.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from leafsync.client.sync.domain.priorities import partition_by_priority
from leafsync.client.sync.errors import classify_error
from leafsync.client.sync.paths import (
    decode_name,
    leaf_parts,
    metadata_path,
    note_parts,
)
from leafsync.client.sync.staleness import StalenessOracle
from leafsync.client.sync.types import (
    PULL_EMPTY,
    PULL_SUCCESS,
    FailureReason,
    ProgressCallback,
    PullOptions,
    PullProgress,
    PullResult,
    Variant,
)
from leafsync.core.types import Leaf, Metadata, Note, World, now_ms

if TYPE_CHECKING:
    from leafsync.client.api import GitHubClient, TreeEntry
    from leafsync.core.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT_FETCHES = 8


@dataclass
class LeafEntry:
    """A leaf file in the remote manifest (content not fetched yet).

    Attributes:
        path: Repository path.
        sha: Blob SHA.
        note_key: Owning note path relative to the namespace ("A" or "A/B").
        title: File name without extension, still percent-encoded.
    """

    path: str
    sha: str
    note_key: str
    title: str

    @property
    def relative_path(self) -> str:
        """Path relative to the namespace, the metadata key."""
        return f"{self.note_key}/{self.title}.md"


@dataclass
class Manifest:
    """Paths of one world in the remote tree."""

    note_keys: list[str] = field(default_factory=list)
    leaves: list[LeafEntry] = field(default_factory=list)
    metadata_sha: str | None = None

    @classmethod
    def from_entries(cls, entries: list[TreeEntry], world: World) -> Manifest:
        """Build the manifest of a world from a recursive tree listing.

        Note folders come from tree entries and from the parents of leaf
        files. Anything deeper than two note levels is ignored.
        """
        manifest = cls()
        keys: set[str] = set()
        meta_path = metadata_path(world)

        for entry in sorted(entries, key=lambda e: e.path):
            if entry.type == "tree":
                parts = note_parts(entry.path, world)
                if parts is not None:
                    keys.add("/".join(parts))
            elif entry.type == "blob":
                if entry.path == meta_path:
                    manifest.metadata_sha = entry.sha
                    continue
                parsed = leaf_parts(entry.path, world)
                if parsed is None:
                    continue
                names, title = parsed
                note_key = "/".join(names)
                keys.add(names[0])
                keys.add(note_key)
                manifest.leaves.append(
                    LeafEntry(path=entry.path, sha=entry.sha, note_key=note_key, title=title)
                )

        # Parents sort before their children
        manifest.note_keys = sorted(keys, key=lambda k: (k.count("/"), k))
        return manifest


def assemble_notes(note_keys: list[str], metadata: Metadata, world: World) -> dict[str, Note]:
    """Create Note records for note folder paths.

    Ids and order come from metadata when present; otherwise a new id is
    generated and siblings are ordered by name.

    Returns:
        Note path relative to the namespace -> Note, parents first.
    """
    notes: dict[str, Note] = {}
    sibling_index: dict[str | None, int] = {}

    for key in note_keys:
        parent_key, _, name = key.rpartition("/")
        parent = notes.get(parent_key) if parent_key else None
        parent_id = parent.id if parent is not None else None

        index = sibling_index.get(parent_id, 0)
        sibling_index[parent_id] = index + 1

        meta = metadata.notes.get(key)
        notes[key] = Note(
            id=meta.id if meta else uuid.uuid4().hex,
            name=decode_name(name),
            parent_id=parent_id,
            order=meta.order if meta else index,
            world=world,
        )
    return notes


def assemble_leaves(
    entries: list[LeafEntry],
    contents: dict[str, str],
    notes: dict[str, Note],
    metadata: Metadata,
) -> list[Leaf]:
    """Create Leaf records in manifest order."""
    leaves: list[Leaf] = []
    note_index: dict[str, int] = {}

    for entry in entries:
        index = note_index.get(entry.note_key, 0)
        note_index[entry.note_key] = index + 1

        meta = metadata.leaves.get(entry.relative_path)
        leaves.append(
            Leaf(
                id=meta.id if meta else uuid.uuid4().hex,
                note_id=notes[entry.note_key].id,
                title=decode_name(entry.title),
                content=contents[entry.path],
                order=meta.order if meta else index,
                updated_at=meta.updated_at if meta and meta.updated_at else now_ms(),
                badge_icon=meta.badge_icon if meta else None,
                badge_color=meta.badge_color if meta else None,
            )
        )
    return leaves


class PriorityPullFetcher:
    """Downloads one world of the remote repository.

    Usage:
        async with GitHubClient(settings) as client:
            fetcher = PriorityPullFetcher(client, settings)
            result = await fetcher.pull(PullOptions(priority=hint, on_progress=cb))
    """

    def __init__(
        self,
        client: GitHubClient,
        settings: Settings,
        oracle: StalenessOracle | None = None,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT_FETCHES,
    ) -> None:
        """Initialize the fetcher.

        Args:
            client: HTTP client bound to the repository.
            settings: Branch settings.
            oracle: HEAD resolver; created from client and settings if omitted.
            max_concurrent: Maximum blob fetches in flight.
        """
        self._client = client
        self._settings = settings
        self._oracle = oracle or StalenessOracle(client, settings)
        self._max_concurrent = max(1, max_concurrent)

    async def pull(self, options: PullOptions | None = None) -> PullResult:
        """Download and assemble the remote notes and leaves.

        Args:
            options: Priority hint, progress callback and world.

        Returns:
            PullResult with the complete collections and the HEAD commit SHA,
            or a classified failure. Never raises.
        """
        options = options or PullOptions()
        world = options.world

        head = await self._oracle.fetch_head()
        if head.status == FailureReason.EMPTY_REPOSITORY:
            return PullResult(
                success=True,
                message=PULL_EMPTY,
                variant=Variant.SUCCESS,
                rate_limit=head.rate_limit,
            )
        if not head.ok or head.commit_sha is None:
            return PullResult.failure(FailureReason(head.status), rate_limit=head.rate_limit)

        metadata = Metadata()
        try:
            tree_sha = await self._client.get_commit_tree(head.commit_sha)
            listing = await self._client.get_tree(tree_sha)
            if listing.truncated:
                logger.warning(f"Tree listing of {tree_sha} is truncated, pull may be incomplete")
            manifest = Manifest.from_entries(listing.entries, world)

            if manifest.metadata_sha is not None:
                metadata = Metadata.from_json(await self._client.get_blob(manifest.metadata_sha))

            notes = assemble_notes(manifest.note_keys, metadata, world)
            priority, rest = partition_by_priority(
                manifest.leaves,
                options.priority,
                world,
                path_of=lambda e: e.path,
                note_id_of=lambda e: notes[e.note_key].id,
            )
            logger.info(
                f"Pulling {len(manifest.leaves)} leaves from {head.commit_sha} "
                f"({len(priority)} prioritized)"
            )
            contents = await self._fetch_contents(priority, rest, options.on_progress)
            leaves = assemble_leaves(manifest.leaves, contents, notes, metadata)
        except Exception as e:
            reason = classify_error(e)
            logger.error(f"Pull failed: {e}")
            return PullResult.failure(reason, metadata, self._client.rate_limit)

        logger.info(f"Pulled {len(notes)} notes and {len(leaves)} leaves at {head.commit_sha}")
        return PullResult(
            success=True,
            message=PULL_SUCCESS,
            variant=Variant.SUCCESS,
            notes=list(notes.values()),
            leaves=leaves,
            metadata=metadata,
            rate_limit=self._client.rate_limit,
            commit_sha=head.commit_sha,
        )

    async def _fetch_contents(
        self,
        priority: list[LeafEntry],
        rest: list[LeafEntry],
        on_progress: ProgressCallback | None,
    ) -> dict[str, str]:
        """Fetch leaf contents, every priority leaf before any other leaf.

        Within a partition fetches run concurrently and may complete in any
        order; the progress counter is incremented once per completion.

        Returns:
            Leaf path -> content.
        """
        total = len(priority) + len(rest)
        contents: dict[str, str] = {}
        semaphore = asyncio.Semaphore(self._max_concurrent)
        fetched = 0

        async def fetch(entry: LeafEntry) -> None:
            nonlocal fetched
            async with semaphore:
                content = await self._client.get_blob(entry.sha)
            contents[entry.path] = content
            fetched += 1
            if on_progress:
                on_progress(PullProgress(fetched=fetched, total=total, path=entry.path))

        for partition in (priority, rest):
            if not partition:
                continue
            tasks = [asyncio.create_task(fetch(entry)) for entry in partition]
            try:
                await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

        return contents
