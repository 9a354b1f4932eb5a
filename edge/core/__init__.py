"""
Core Module - errors, value types and pure helpers shared by every layer.
"""

from edge.core.errors import (
    EdgeError,
    ExternalServiceError,
    MalformedOutputError,
    PersistenceError,
    PhaseMismatchError,
    RateLimitExceeded,
    SessionBusyError,
    StaleSnapshotError,
    ValidationError,
)
from edge.core.models import (
    SCORE_DIMENSIONS,
    Message,
    MissionStatus,
    ReviewScheduleEntry,
    SessionRecord,
    SessionScores,
)
from edge.core.rate_limit import RateLimiter, RateLimitResult

__all__ = [
    # Errors
    "EdgeError",
    "ExternalServiceError",
    "MalformedOutputError",
    "PersistenceError",
    "PhaseMismatchError",
    "RateLimitExceeded",
    "SessionBusyError",
    "StaleSnapshotError",
    "ValidationError",
    # Models
    "SCORE_DIMENSIONS",
    "Message",
    "MissionStatus",
    "ReviewScheduleEntry",
    "SessionRecord",
    "SessionScores",
    # Rate limiting
    "RateLimiter",
    "RateLimitResult",
]
