"""Shared types for leafsync.

This module defines the records synchronized with the remote repository
(notes, leaves, metadata) and small value types used across the client.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

METADATA_VERSION = 1

# Note ids with this prefix are synthesized views and never pushed.
VIRTUAL_ID_PREFIX = "__"


class World(str, Enum):
    """Partition of the note space.

    Each world has its own namespace in the repository and is pulled
    independently.
    """

    HOME = "home"
    ARCHIVE = "archive"


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class Note:
    """A folder-like grouping node.

    Attributes:
        id: Stable identifier (restored from metadata on pull).
        name: Folder name, used in the remote path.
        parent_id: Id of the parent note for sub-notes, None for root notes.
        order: Sort key among siblings.
        world: World the note belongs to.
    """

    id: str
    name: str
    parent_id: str | None = None
    order: int = 0
    world: World = World.HOME

    @property
    def is_virtual(self) -> bool:
        """Check if this note is a synthesized, non-persisted view."""
        return self.id.startswith(VIRTUAL_ID_PREFIX)


@dataclass
class Leaf:
    """An individual markdown document owned by a note."""

    id: str
    note_id: str
    title: str
    content: str
    order: int = 0
    updated_at: int = field(default_factory=now_ms)
    badge_icon: str | None = None
    badge_color: str | None = None


@dataclass
class NoteMeta:
    """Per-note metadata stored alongside the notes."""

    id: str
    order: int = 0


@dataclass
class LeafMeta:
    """Per-leaf metadata stored alongside the notes."""

    id: str
    order: int = 0
    updated_at: int = 0
    badge_icon: str | None = None
    badge_color: str | None = None


@dataclass
class Metadata:
    """Sync-relevant aggregate state serialized next to the notes.

    Notes and leaves are keyed by their repository path so that ids,
    ordering and badges survive a pull.
    """

    version: int = METADATA_VERSION
    notes: dict[str, NoteMeta] = field(default_factory=dict)
    leaves: dict[str, LeafMeta] = field(default_factory=dict)
    priority_badge_icon: str | None = None
    priority_badge_color: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "version": self.version,
            "notes": {
                path: {"id": m.id, "order": m.order}
                for path, m in sorted(self.notes.items())
            },
            "leaves": {
                path: {
                    "id": m.id,
                    "order": m.order,
                    "updated_at": m.updated_at,
                    "badge_icon": m.badge_icon,
                    "badge_color": m.badge_color,
                }
                for path, m in sorted(self.leaves.items())
            },
            "priority_badge_icon": self.priority_badge_icon,
            "priority_badge_color": self.priority_badge_color,
        }

    def to_json(self) -> str:
        """Serialize to the stable JSON text written to the repository.

        Keys are sorted so identical metadata always yields identical bytes.
        """
        return json.dumps(self.to_dict(), indent=2, sort_keys=True, ensure_ascii=False) + "\n"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Metadata:
        """Create from a dictionary, skipping malformed entries.

        Null or missing numbers take their defaults. An entry without an id
        or with a non-numeric field is dropped with a warning, and so is a
        section that is not an object.
        """
        notes: dict[str, NoteMeta] = {}
        for path, raw in _section_entries(data, "notes"):
            try:
                notes[path] = NoteMeta(id=str(raw["id"]), order=_int_field(raw, "order"))
            except (TypeError, ValueError, OverflowError) as e:
                logger.warning(f"Skipping malformed metadata for note {path}: {e}")

        leaves: dict[str, LeafMeta] = {}
        for path, raw in _section_entries(data, "leaves"):
            try:
                leaves[path] = LeafMeta(
                    id=str(raw["id"]),
                    order=_int_field(raw, "order"),
                    updated_at=_int_field(raw, "updated_at"),
                    badge_icon=_str_field(raw, "badge_icon"),
                    badge_color=_str_field(raw, "badge_color"),
                )
            except (TypeError, ValueError, OverflowError) as e:
                logger.warning(f"Skipping malformed metadata for leaf {path}: {e}")

        try:
            version = _int_field(data, "version", METADATA_VERSION)
        except (TypeError, ValueError, OverflowError):
            logger.warning(f"Ignoring metadata version {data.get('version')!r}")
            version = METADATA_VERSION

        return cls(
            version=version,
            notes=notes,
            leaves=leaves,
            priority_badge_icon=_str_field(data, "priority_badge_icon"),
            priority_badge_color=_str_field(data, "priority_badge_color"),
        )

    @classmethod
    def from_json(cls, text: str) -> Metadata:
        """Parse metadata text, defaulting to empty metadata when unreadable."""
        try:
            data = json.loads(text)
        except ValueError as e:
            logger.warning(f"Ignoring unparsable metadata: {e}")
            return cls()
        if not isinstance(data, Mapping):
            logger.warning("Ignoring metadata that is not a JSON object")
            return cls()
        return cls.from_dict(data)


def _section_entries(
    data: Mapping[str, Any], section: str
) -> list[tuple[str, Mapping[str, Any]]]:
    """(path, entry) pairs of a metadata section whose entries carry an id."""
    entries = data.get(section)
    if entries is None:
        return []
    if not isinstance(entries, Mapping):
        logger.warning(f"Ignoring metadata {section}: expected an object")
        return []
    return [
        (str(path), raw)
        for path, raw in entries.items()
        if isinstance(raw, Mapping) and raw.get("id")
    ]


def _int_field(raw: Mapping[str, Any], key: str, default: int = 0) -> int:
    """Read an integer field, null meaning the default.

    Raises:
        TypeError, ValueError, OverflowError: If the value is not a
            finite number.
    """
    value = raw.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        raise TypeError(f"{key} must be a number, not {value!r}")
    return int(value)


def _str_field(raw: Mapping[str, Any], key: str) -> str | None:
    value = raw.get(key)
    return value if isinstance(value, str) else None


@dataclass
class PullPriority:
    """Leaves to fetch first during a pull.

    Attributes:
        leaf_paths: Leaf paths, with or without the namespace prefix.
        note_ids: Ids of notes whose leaves should be fetched first.
    """

    leaf_paths: list[str] = field(default_factory=list)
    note_ids: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """Check if the hint selects nothing."""
        return not self.leaf_paths and not self.note_ids


@dataclass(frozen=True)
class RateLimitInfo:
    """API rate limit state reported by the remote.

    Attributes:
        limit: Requests allowed per window.
        remaining: Requests left in the current window.
        reset: Epoch seconds when the window resets.
        used: Requests used in the current window.
    """

    limit: int
    remaining: int
    reset: int
    used: int = 0

    @property
    def is_low(self) -> bool:
        """Check if fewer than 10% of the requests remain."""
        return self.limit > 0 and self.remaining < self.limit * 0.1

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> RateLimitInfo | None:
        """Parse X-RateLimit-* headers.

        Returns:
            RateLimitInfo, or None if the headers are missing or malformed.
        """
        try:
            return cls(
                limit=int(headers["x-ratelimit-limit"]),
                remaining=int(headers["x-ratelimit-remaining"]),
                reset=int(headers["x-ratelimit-reset"]),
                used=int(headers.get("x-ratelimit-used", 0)),
            )
        except (KeyError, ValueError):
            return None
