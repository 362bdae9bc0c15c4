"""Local cache for notes, leaves and sync state.

This module provides:
- SettingsStore, ObjectStore: Interfaces the sync layer expects from its
  local collaborators
- LocalCache: SQLite-based implementation of both

Architecture:
    After a successful pull the caller replaces a world's notes and leaves
    wholesale (replace_all) and records the pulled commit SHA. A push reads
    the whole world back (load_notes/load_leaves). Per-record get/put/delete
    serve local editing between syncs.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Protocol

from leafsync.core.types import Leaf, Metadata, Note, World

logger = logging.getLogger(__name__)

LAST_COMMIT_SHA_KEY = "last_commit_sha"
INITIAL_PULL_KEY = "initial_pull_complete"


class SettingsStore(Protocol):
    """Key/value store for small pieces of sync state."""

    def get_state(self, key: str) -> str | None: ...

    def set_state(self, key: str, value: str) -> None: ...


class ObjectStore(Protocol):
    """Per-world store of notes and leaves."""

    def load_notes(self, world: World) -> list[Note]: ...

    def load_leaves(self, world: World) -> list[Leaf]: ...

    def replace_all(self, world: World, notes: list[Note], leaves: list[Leaf]) -> None: ...

    def get_note(self, note_id: str) -> Note | None: ...

    def put_note(self, note: Note) -> None: ...

    def delete_note(self, note_id: str) -> None: ...

    def get_leaf(self, leaf_id: str) -> Leaf | None: ...

    def put_leaf(self, leaf: Leaf, world: World = World.HOME) -> None: ...

    def delete_leaf(self, leaf_id: str) -> None: ...


def _note_from_row(row: sqlite3.Row) -> Note:
    return Note(
        id=row["id"],
        name=row["name"],
        parent_id=row["parent_id"],
        order=row["sort_order"],
        world=World(row["world"]),
    )


def _leaf_from_row(row: sqlite3.Row) -> Leaf:
    return Leaf(
        id=row["id"],
        note_id=row["note_id"],
        title=row["title"],
        content=row["content"],
        order=row["sort_order"],
        updated_at=row["updated_at"],
        badge_icon=row["badge_icon"],
        badge_color=row["badge_color"],
    )


class LocalCache:
    """SQLite-based local store for notes, leaves and sync state.

    Leaves carry their world explicitly so that a leaf whose note has been
    removed locally still belongs to exactly one world.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the cache database.

        Args:
            db_path: Path to SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")

        self._create_tables()

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS notes (
                id TEXT PRIMARY KEY,
                world TEXT NOT NULL,
                name TEXT NOT NULL,
                parent_id TEXT,
                sort_order INTEGER NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS leaves (
                id TEXT PRIMARY KEY,
                world TEXT NOT NULL,
                note_id TEXT NOT NULL,
                title TEXT NOT NULL,
                content TEXT NOT NULL,
                sort_order INTEGER NOT NULL DEFAULT 0,
                updated_at INTEGER NOT NULL,
                badge_icon TEXT,
                badge_color TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_leaves_note ON leaves(note_id);

            -- Key-value sync state
            CREATE TABLE IF NOT EXISTS sync_state (
                key TEXT PRIMARY KEY,
                value TEXT
            );
        """)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # === World operations ===

    def load_notes(self, world: World) -> list[Note]:
        """Load all notes of a world, parents first."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM notes WHERE world = ? "
                "ORDER BY parent_id IS NOT NULL, sort_order, name",
                (world.value,),
            ).fetchall()
        return [_note_from_row(row) for row in rows]

    def load_leaves(self, world: World) -> list[Leaf]:
        """Load all leaves of a world."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM leaves WHERE world = ? ORDER BY note_id, sort_order, title",
                (world.value,),
            ).fetchall()
        return [_leaf_from_row(row) for row in rows]

    def replace_all(self, world: World, notes: list[Note], leaves: list[Leaf]) -> None:
        """Replace every note and leaf of a world in one transaction.

        Args:
            world: World to replace.
            notes: New notes of the world.
            leaves: New leaves of the world.
        """
        with self._lock:
            try:
                self._conn.execute("BEGIN")
                self._conn.execute("DELETE FROM leaves WHERE world = ?", (world.value,))
                self._conn.execute("DELETE FROM notes WHERE world = ?", (world.value,))
                for note in notes:
                    self._insert_note(note, world)
                for leaf in leaves:
                    self._insert_leaf(leaf, world)
                self._conn.execute("COMMIT")
            except Exception:
                self._conn.execute("ROLLBACK")
                raise
        logger.debug(f"Replaced {world.value}: {len(notes)} notes, {len(leaves)} leaves")

    # === Note operations ===

    def get_note(self, note_id: str) -> Note | None:
        """Get a note by id."""
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM notes WHERE id = ?", (note_id,)
            ).fetchone()
        if row is None:
            return None
        return _note_from_row(row)

    def put_note(self, note: Note) -> None:
        """Insert or replace a note."""
        with self._lock:
            self._insert_note(note, note.world)

    def delete_note(self, note_id: str) -> None:
        """Delete a note. Its leaves are kept and become local-only."""
        with self._lock:
            self._conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))

    # === Leaf operations ===

    def get_leaf(self, leaf_id: str) -> Leaf | None:
        """Get a leaf by id."""
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM leaves WHERE id = ?", (leaf_id,)
            ).fetchone()
        if row is None:
            return None
        return _leaf_from_row(row)

    def put_leaf(self, leaf: Leaf, world: World = World.HOME) -> None:
        """Insert or replace a leaf.

        Args:
            leaf: Leaf to store.
            world: World of the leaf (the world of its note if that is cached).
        """
        with self._lock:
            note = self.get_note(leaf.note_id)
            self._insert_leaf(leaf, note.world if note is not None else world)

    def delete_leaf(self, leaf_id: str) -> None:
        """Delete a leaf."""
        with self._lock:
            self._conn.execute("DELETE FROM leaves WHERE id = ?", (leaf_id,))

    # === Sync state ===

    def get_state(self, key: str) -> str | None:
        """Get a sync state value."""
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM sync_state WHERE key = ?", (key,)
            ).fetchone()
        return row["value"] if row else None

    def set_state(self, key: str, value: str) -> None:
        """Set a sync state value."""
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO sync_state (key, value) VALUES (?, ?)",
                (key, value),
            )

    def get_last_commit_sha(self) -> str | None:
        """Get the commit SHA recorded after the last successful sync."""
        return self.get_state(LAST_COMMIT_SHA_KEY)

    def set_last_commit_sha(self, commit_sha: str) -> None:
        """Record the commit SHA of a successful push or pull."""
        self.set_state(LAST_COMMIT_SHA_KEY, commit_sha)

    def is_initial_pull_complete(self) -> bool:
        """Check if a pull has ever succeeded (pushes are locked until then)."""
        return self.get_state(INITIAL_PULL_KEY) == "1"

    def mark_initial_pull_complete(self) -> None:
        """Record that a pull has succeeded."""
        self.set_state(INITIAL_PULL_KEY, "1")

    def get_metadata(self, world: World) -> Metadata:
        """Get the cached metadata of a world (empty if never stored)."""
        raw = self.get_state(f"metadata:{world.value}")
        if raw is None:
            return Metadata()
        return Metadata.from_json(raw)

    def set_metadata(self, world: World, metadata: Metadata) -> None:
        """Store the metadata of a world."""
        self.set_state(f"metadata:{world.value}", metadata.to_json())

    # === Internals ===

    def _insert_note(self, note: Note, world: World) -> None:
        self._conn.execute(
            """
            INSERT OR REPLACE INTO notes (id, world, name, parent_id, sort_order)
            VALUES (?, ?, ?, ?, ?)
            """,
            (note.id, world.value, note.name, note.parent_id, note.order),
        )

    def _insert_leaf(self, leaf: Leaf, world: World) -> None:
        self._conn.execute(
            """
            INSERT OR REPLACE INTO leaves (
                id, world, note_id, title, content, sort_order,
                updated_at, badge_icon, badge_color
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                leaf.id,
                world.value,
                leaf.note_id,
                leaf.title,
                leaf.content,
                leaf.order,
                leaf.updated_at,
                leaf.badge_icon,
                leaf.badge_color,
            ),
        )
