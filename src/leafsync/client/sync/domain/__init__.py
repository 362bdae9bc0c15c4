"""Domain modules for sync business rules.

This package centralizes business logic for the sync system:
- changes: git blob hashing and change counting for push
- priorities: priority/rest partition for pull
- versions: commit identity comparison for staleness

Architecture:
    domain/ contains pure business logic without network access.
    API calls stay in the push/pull engines.
"""

from leafsync.client.sync.domain.changes import (
    ChangeSummary,
    git_blob_sha,
    summarize_changes,
)
from leafsync.client.sync.domain.priorities import partition_by_priority
from leafsync.client.sync.domain.versions import decide_staleness

__all__ = [
    # changes
    "ChangeSummary",
    "git_blob_sha",
    "summarize_changes",
    # priorities
    "partition_by_priority",
    # versions
    "decide_staleness",
]
