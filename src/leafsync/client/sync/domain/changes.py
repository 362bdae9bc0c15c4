"""Change detection between a desired snapshot and the remote tree.

Content is compared through git blob SHAs computed locally, so no blob
has to be downloaded to know whether a file changed.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from dataclasses import dataclass, field


def git_blob_sha(content: str) -> str:
    """Compute the SHA git assigns to a blob with this UTF-8 content."""
    data = content.encode("utf-8")
    header = f"blob {len(data)}\0".encode()
    return hashlib.sha1(header + data).hexdigest()


@dataclass
class ChangeSummary:
    """Differences between the pushed snapshot and the base tree."""

    added: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    metadata_changed: bool = False

    @property
    def changed_leaf_count(self) -> int:
        """Number of leaf files whose content differs from the base tree."""
        return len(self.added) + len(self.modified) + len(self.removed)

    @property
    def metadata_only_changed(self) -> bool:
        """True when only ordering/settings metadata changed."""
        return self.changed_leaf_count == 0 and self.metadata_changed


def summarize_changes(
    desired_leaves: Mapping[str, str],
    existing_leaves: Mapping[str, str],
    desired_metadata: Mapping[str, str],
    existing_metadata: Mapping[str, str],
) -> ChangeSummary:
    """Compare a desired snapshot with the base tree.

    Args:
        desired_leaves: Leaf path -> content about to be pushed.
        existing_leaves: Leaf path -> blob SHA in the base tree, limited to
            the namespaces being rewritten.
        desired_metadata: Metadata path -> content about to be pushed.
        existing_metadata: Metadata path -> blob SHA in the base tree.

    Returns:
        ChangeSummary. A rename shows up as one removed and one added path.
    """
    summary = ChangeSummary()

    for path, content in sorted(desired_leaves.items()):
        old_sha = existing_leaves.get(path)
        if old_sha is None:
            summary.added.append(path)
        elif old_sha != git_blob_sha(content):
            summary.modified.append(path)

    summary.removed = sorted(set(existing_leaves) - set(desired_leaves))

    summary.metadata_changed = set(desired_metadata) != set(existing_metadata) or any(
        existing_metadata[path] != git_blob_sha(content)
        for path, content in desired_metadata.items()
    )
    return summary
