"""Priority partition for pull.

Leaves the user is looking at are fetched before the rest of the corpus.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TypeVar

from leafsync.client.sync.paths import normalize_leaf_path
from leafsync.core.types import PullPriority, World

T = TypeVar("T")


def partition_by_priority(
    items: Sequence[T],
    priority: PullPriority | None,
    world: World,
    path_of: Callable[[T], str],
    note_id_of: Callable[[T], str | None],
) -> tuple[list[T], list[T]]:
    """Split leaf entries into priority and rest partitions.

    An item is a priority item if its path is listed in the hint's leaf
    paths (with or without the namespace prefix) or its owning note id is
    listed in the hint's note ids. Priority items follow the hint's order:
    listed leaf paths first, then leaves of listed notes. The rest keep
    their input order.

    Args:
        items: Leaf entries in manifest order.
        priority: Optional hint.
        world: World being pulled, used to qualify hint paths.
        path_of: Returns the repository path of an item.
        note_id_of: Returns the owning note id of an item, if known.

    Returns:
        (priority items, rest items)
    """
    if priority is None or priority.is_empty:
        return [], list(items)

    # First occurrence wins for duplicated hints
    path_rank: dict[str, int] = {}
    for i, p in enumerate(priority.leaf_paths):
        path_rank.setdefault(normalize_leaf_path(p, world), i)
    note_rank: dict[str, int] = {}
    for i, n in enumerate(priority.note_ids):
        note_rank.setdefault(n, len(priority.leaf_paths) + i)

    ranked: list[tuple[int, int, T]] = []
    rest: list[T] = []
    for index, item in enumerate(items):
        rank = path_rank.get(path_of(item))
        if rank is None:
            note_id = note_id_of(item)
            rank = note_rank.get(note_id) if note_id is not None else None
        if rank is None:
            rest.append(item)
        else:
            ranked.append((rank, index, item))

    ranked.sort(key=lambda r: (r[0], r[1]))
    return [item for _, _, item in ranked], rest
