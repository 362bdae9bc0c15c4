"""Sync operations between the local note store and a GitHub repository.

Architecture:
    SyncCoordinator → CommitBuilder / PriorityPullFetcher → StalenessOracle

Components:
- **SyncCoordinator**: Validates preconditions, owns the push lock
- **CommitBuilder**: One atomic commit per push (full tree rebuild)
- **PriorityPullFetcher**: Manifest first, then prioritized leaf downloads
- **StalenessOracle**: Single-call remote HEAD lookup

All operations return typed results; see types.py for FailureReason.
"""

from leafsync.client.sync.coordinator import SyncCoordinator
from leafsync.client.sync.errors import classify_error
from leafsync.client.sync.pull import PriorityPullFetcher
from leafsync.client.sync.push import CommitBuilder, build_snapshot
from leafsync.client.sync.staleness import StalenessOracle
from leafsync.client.sync.types import (
    FAILURE_MESSAGES,
    ArchiveData,
    CheckFailed,
    FailureReason,
    HeadResult,
    ProgressCallback,
    PullOptions,
    PullProgress,
    PullResult,
    PushResult,
    Stale,
    StaleCheckResult,
    UpToDate,
    Variant,
)

__all__ = [
    # Engines
    "SyncCoordinator",
    "CommitBuilder",
    "PriorityPullFetcher",
    "StalenessOracle",
    "build_snapshot",
    "classify_error",
    # Types and dataclasses
    "FAILURE_MESSAGES",
    "ArchiveData",
    "FailureReason",
    "HeadResult",
    "ProgressCallback",
    "PullOptions",
    "PullProgress",
    "PullResult",
    "PushResult",
    "Variant",
    # Stale check results
    "CheckFailed",
    "Stale",
    "StaleCheckResult",
    "UpToDate",
]
