"""Repository path layout for notes and leaves.

Layout per world namespace:

    <namespace>/metadata.json
    <namespace>/<note>/.gitkeep
    <namespace>/<note>/<leaf title>.md
    <namespace>/<parent note>/<note>/.gitkeep
    <namespace>/<parent note>/<note>/<leaf title>.md

Directory depth encodes nesting (at most two note levels). Files directly
under the namespace are never leaves.

Names are stored percent-encoded ("/" as %2F, "%" as %25) so that each
note name or leaf title stays one path segment.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from leafsync.core.types import Leaf, Note, World

NAMESPACES: dict[World, str] = {
    World.HOME: "notes",
    World.ARCHIVE: "archive",
}

METADATA_FILENAME = "metadata.json"
FOLDER_MARKER = ".gitkeep"
LEAF_SUFFIX = ".md"
MAX_NOTE_DEPTH = 2

_ESCAPED = re.compile(r"%(25|2F)", re.IGNORECASE)


def namespace_for(world: World) -> str:
    """Get the top-level directory of a world."""
    return NAMESPACES[world]


def metadata_path(world: World) -> str:
    """Get the repository path of a world's metadata file."""
    return f"{namespace_for(world)}/{METADATA_FILENAME}"


def is_note_saveable(note: Note) -> bool:
    """Check if a note is persisted (virtual notes are not)."""
    return not note.is_virtual


def is_leaf_saveable(leaf: Leaf, notes_by_id: Mapping[str, Note]) -> bool:
    """Check if a leaf is persisted.

    Leaves must belong to an existing, saveable note; root-level leaves
    are local-only.
    """
    note = notes_by_id.get(leaf.note_id)
    return note is not None and is_note_saveable(note)


def encode_name(name: str) -> str:
    """Turn a note name or leaf title into a single path segment.

    "/" would start a new directory, so it is percent-encoded, and "%"
    is encoded too so that decode_name restores the exact name.
    """
    return name.replace("%", "%25").replace("/", "%2F")


def decode_name(segment: str) -> str:
    """Restore the note name or leaf title stored in a path segment."""
    return _ESCAPED.sub(lambda m: "/" if m.group(1).upper() == "2F" else "%", segment)


def note_relative_path(note: Note, notes_by_id: Mapping[str, Note]) -> str:
    """Build "<parent>/<note>" or "<note>" for a note.

    A parent id that does not resolve is treated as a root note.
    """
    parent = notes_by_id.get(note.parent_id) if note.parent_id else None
    if parent is not None:
        return f"{encode_name(parent.name)}/{encode_name(note.name)}"
    return encode_name(note.name)


def note_dir_path(note: Note, notes_by_id: Mapping[str, Note], world: World) -> str:
    """Get the repository directory of a note."""
    return f"{namespace_for(world)}/{note_relative_path(note, notes_by_id)}"


def leaf_path(leaf: Leaf, notes_by_id: Mapping[str, Note], world: World) -> str | None:
    """Get the repository path of a leaf.

    Returns:
        "<namespace>/[<parent>/]<note>/<title>.md", or None for leaves
        that are not saveable.
    """
    if not is_leaf_saveable(leaf, notes_by_id):
        return None
    note = notes_by_id[leaf.note_id]
    return f"{note_dir_path(note, notes_by_id, world)}/{encode_name(leaf.title)}{LEAF_SUFFIX}"


def strip_namespace(path: str, world: World) -> str | None:
    """Return the path relative to the world namespace, or None if outside it."""
    prefix = namespace_for(world) + "/"
    if path.startswith(prefix):
        return path[len(prefix):]
    return None


def normalize_leaf_path(path: str, world: World) -> str:
    """Qualify a leaf path with the world namespace if it lacks it."""
    path = path.strip("/")
    if strip_namespace(path, world) is not None:
        return path
    return f"{namespace_for(world)}/{path}"


def is_under_namespace(path: str, world: World) -> bool:
    """Check if a repository path belongs to a world."""
    return path == namespace_for(world) or strip_namespace(path, world) is not None


def note_parts(path: str, world: World) -> list[str] | None:
    """Split a note directory path into note names.

    Returns:
        One or two names, or None if the path is not a note directory.
    """
    relative = strip_namespace(path, world)
    if not relative:
        return None
    parts = relative.split("/")
    if len(parts) > MAX_NOTE_DEPTH:
        return None
    return parts


def leaf_parts(path: str, world: World) -> tuple[list[str], str] | None:
    """Split a leaf file path into owning note names and leaf title.

    Returns:
        (note names, title), or None if the path is not a leaf file.
    """
    relative = strip_namespace(path, world)
    if not relative or not relative.endswith(LEAF_SUFFIX):
        return None
    parts = relative.split("/")
    notes, filename = parts[:-1], parts[-1]
    if not notes or len(notes) > MAX_NOTE_DEPTH:
        return None
    return notes, filename[: -len(LEAF_SUFFIX)]
