"""Core module - Shared settings and record types."""

from leafsync.core.config import DEFAULT_API_URL, DEFAULT_BRANCH, Settings
from leafsync.core.types import (
    VIRTUAL_ID_PREFIX,
    Leaf,
    LeafMeta,
    Metadata,
    Note,
    NoteMeta,
    PullPriority,
    RateLimitInfo,
    World,
    now_ms,
)

__all__ = [
    # Config
    "DEFAULT_API_URL",
    "DEFAULT_BRANCH",
    "Settings",
    # Types
    "VIRTUAL_ID_PREFIX",
    "Leaf",
    "LeafMeta",
    "Metadata",
    "Note",
    "NoteMeta",
    "PullPriority",
    "RateLimitInfo",
    "World",
    "now_ms",
]
