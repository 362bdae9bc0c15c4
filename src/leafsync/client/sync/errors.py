"""Failure classification for the sync boundary.

Exceptions raised by the HTTP client never leave the sync engines; they
are mapped to a FailureReason here and returned inside a result.
"""

from __future__ import annotations

import logging

from leafsync.client.api import (
    APIError,
    AuthenticationError,
    NetworkError,
    RateLimitError,
    RefConflictError,
)
from leafsync.client.sync.types import FailureReason

logger = logging.getLogger(__name__)


def classify_error(error: Exception) -> FailureReason:
    """Map an exception to the reason reported to callers.

    Args:
        error: Exception raised while talking to the remote.

    Returns:
        The matching FailureReason. Anything unrecognised is an API_ERROR.
    """
    if isinstance(error, AuthenticationError):
        return FailureReason.AUTH_ERROR
    if isinstance(error, RateLimitError):
        return FailureReason.RATE_LIMITED
    if isinstance(error, RefConflictError):
        return FailureReason.CONFLICT
    if isinstance(error, NetworkError):
        return FailureReason.NETWORK_ERROR
    if isinstance(error, APIError):
        return FailureReason.API_ERROR
    # Malformed responses (missing keys, undecodable blobs) end up here too
    logger.debug(f"Unclassified sync error {type(error).__name__}: {error}")
    return FailureReason.API_ERROR
