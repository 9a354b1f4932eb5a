"""API routers for the edge trainer."""

from edge.api.routers import session_router, status_router

__all__ = [
    "session_router",
    "status_router",
]
