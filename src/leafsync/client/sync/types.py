"""Shared types and dataclasses for sync operations.

This module provides:
- FailureReason: Classification of every way a sync operation can fail
- Variant: Notification variant for results
- PushResult, PullResult: Operation result dataclasses
- Stale, UpToDate, CheckFailed: The StaleCheckResult union
- HeadResult: Outcome of a remote HEAD lookup
- PullProgress, PullOptions, ArchiveData: Operation inputs
- Type aliases for callbacks
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

from leafsync.core.types import (
    Leaf,
    Metadata,
    Note,
    PullPriority,
    RateLimitInfo,
    World,
)


class FailureReason(str, Enum):
    """Why a sync operation did not succeed.

    Each reason is reported distinctly so callers can branch on it.
    """

    # Preconditions, rejected before any network call
    LOCKED = "locked"  # Initial pull not complete yet
    NO_CONTENT = "no_content"  # Nothing to push
    BUSY = "busy"  # Another push is in flight
    SETTINGS_INVALID = "settings_invalid"  # Missing token or repository

    # Remote outcomes
    AUTH_ERROR = "auth_error"  # Re-enter credentials
    NETWORK_ERROR = "network_error"  # Retryable by the user
    CONFLICT = "conflict"  # Ref moved since read, pull first
    RATE_LIMITED = "rate_limited"  # Wait for the rate limit window
    API_ERROR = "api_error"  # Unexpected remote response
    EMPTY_REPOSITORY = "empty_repository"  # No commits yet (not an error)


class Variant(str, Enum):
    """Notification variant of a result."""

    SUCCESS = "success"
    ERROR = "error"


# i18n message keys
PUSH_SUCCESS = "toast.pushSuccess"
PUSH_NO_CHANGES = "toast.noChanges"
PULL_SUCCESS = "toast.pullSuccess"
PULL_EMPTY = "toast.pullEmpty"

FAILURE_MESSAGES: dict[FailureReason, str] = {
    FailureReason.LOCKED: "toast.pushFailed",
    FailureReason.NO_CONTENT: "toast.noLeaves",
    FailureReason.BUSY: "toast.pushInProgress",
    FailureReason.SETTINGS_INVALID: "toast.settingsInvalid",
    FailureReason.AUTH_ERROR: "toast.authError",
    FailureReason.NETWORK_ERROR: "toast.networkError",
    FailureReason.CONFLICT: "toast.remoteChanged",
    FailureReason.RATE_LIMITED: "toast.rateLimited",
    FailureReason.API_ERROR: "toast.syncError",
    FailureReason.EMPTY_REPOSITORY: PULL_EMPTY,
}


@dataclass
class PullProgress:
    """Progress information for a pull."""

    fetched: int
    total: int
    path: str

    @property
    def percent(self) -> float:
        """Get progress percentage."""
        if self.total == 0:
            return 100.0
        return (self.fetched / self.total) * 100


# Type alias for progress callback
ProgressCallback = Callable[[PullProgress], None]


@dataclass
class PullOptions:
    """Options for a pull.

    Attributes:
        priority: Leaves to fetch before the rest.
        on_progress: Called after each leaf's content resolves.
        world: Which namespace to pull.
    """

    priority: PullPriority | None = None
    on_progress: ProgressCallback | None = None
    world: World = World.HOME


@dataclass
class ArchiveData:
    """Archive world state to include in a push.

    Only supplied when the archive has been loaded locally; otherwise the
    remote archive is carried over untouched.
    """

    notes: list[Note]
    leaves: list[Leaf]
    metadata: Metadata | None = None


@dataclass
class HeadResult:
    """Outcome of resolving the remote branch HEAD."""

    status: Literal["success"] | FailureReason
    commit_sha: str | None = None
    rate_limit: RateLimitInfo | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Check if the HEAD was resolved to a commit."""
        return self.status == "success"


@dataclass
class PushResult:
    """Result of a push operation."""

    success: bool
    message: str
    variant: Variant
    reason: FailureReason | None = None
    rate_limit: RateLimitInfo | None = None
    changed_leaf_count: int | None = None
    metadata_only_changed: bool | None = None
    commit_sha: str | None = None

    @classmethod
    def failure(
        cls,
        reason: FailureReason,
        rate_limit: RateLimitInfo | None = None,
    ) -> PushResult:
        """Create a classified failure result."""
        return cls(
            success=False,
            message=FAILURE_MESSAGES[reason],
            variant=Variant.ERROR,
            reason=reason,
            rate_limit=rate_limit,
        )


@dataclass
class PullResult:
    """Result of a pull operation.

    On failure notes and leaves are empty; metadata holds whatever could
    be recovered before the failure.
    """

    success: bool
    message: str
    variant: Variant
    notes: list[Note] = field(default_factory=list)
    leaves: list[Leaf] = field(default_factory=list)
    metadata: Metadata = field(default_factory=Metadata)
    reason: FailureReason | None = None
    rate_limit: RateLimitInfo | None = None
    commit_sha: str | None = None

    @classmethod
    def failure(
        cls,
        reason: FailureReason,
        metadata: Metadata | None = None,
        rate_limit: RateLimitInfo | None = None,
    ) -> PullResult:
        """Create a classified failure result."""
        return cls(
            success=False,
            message=FAILURE_MESSAGES[reason],
            variant=Variant.ERROR,
            metadata=metadata or Metadata(),
            reason=reason,
            rate_limit=rate_limit,
        )


# =============================================================================
# Stale check results
# =============================================================================


@dataclass(frozen=True)
class Stale:
    """The remote history has moved past the locally known commit."""

    remote_commit_sha: str
    local_commit_sha: str
    status: Literal["stale"] = "stale"


@dataclass(frozen=True)
class UpToDate:
    """The local view matches the remote HEAD (or cannot be older)."""

    status: Literal["up_to_date"] = "up_to_date"


@dataclass(frozen=True)
class CheckFailed:
    """The remote HEAD could not be resolved."""

    reason: FailureReason
    status: Literal["check_failed"] = "check_failed"


StaleCheckResult = Stale | UpToDate | CheckFailed
