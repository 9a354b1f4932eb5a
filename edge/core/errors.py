"""
Error taxonomy for the session lifecycle.

Every error carries an HTTP-ish status code and a retryable flag so the API
layer can map it in one place. Errors raised from inside a phase may carry the
updated snapshot; the caller must keep that snapshot to stay resumable.
"""

from __future__ import annotations

from typing import Any


class EdgeError(Exception):
    """Base class for all lifecycle errors."""

    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str, *, snapshot: Any | None = None):
        super().__init__(message)
        self.message = message
        self.snapshot = snapshot


class ExternalServiceError(EdgeError):
    """The generative call failed, timed out, or was rate-limited upstream."""

    status_code = 502
    retryable = True

    def __init__(
        self,
        message: str,
        *,
        rate_limited: bool = False,
        timed_out: bool = False,
        snapshot: Any | None = None,
    ):
        super().__init__(message, snapshot=snapshot)
        self.rate_limited = rate_limited
        self.timed_out = timed_out


class MalformedOutputError(EdgeError):
    """The call succeeded but the expected markers are absent.

    Only raised inside the extractor, which always recovers with defaults.
    """

    status_code = 500


class ValidationError(EdgeError):
    """Caller input is missing required fields or is not allowed now."""

    status_code = 422


class PhaseMismatchError(ValidationError):
    """The request does not belong to the snapshot's current phase."""

    status_code = 409


class StaleSnapshotError(ValidationError):
    """The snapshot is past its expiry; the lifecycle must restart."""

    status_code = 410


class SessionBusyError(EdgeError):
    """Another submission for the same session is still in flight."""

    status_code = 409
    retryable = True


class RateLimitExceeded(EdgeError):
    """The sliding-window budget for this client and endpoint is spent."""

    status_code = 429
    retryable = True

    def __init__(self, message: str, *, retry_after: int, limit: int | None = None):
        super().__init__(message)
        self.retry_after = retry_after
        self.limit = limit


class PersistenceError(EdgeError):
    """A durable collection could not be written (or locked)."""

    status_code = 500
