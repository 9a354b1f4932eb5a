"""
Shared FastAPI dependencies: service lookup, API-key check, client identity.
"""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

from fastapi import Header, HTTPException, Query, Request

if TYPE_CHECKING:
    from config import Settings
    from edge.api.main import Services


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Service is starting up")
    return services


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def require_api_key(
    request: Request,
    x_api_key: str | None = Header(default=None),
    key: str | None = Query(default=None),
) -> None:
    """Pass-through unless ``edge_api_key`` is set; then X-API-Key or ?key= must match."""
    expected = get_app_settings(request).edge_api_key
    if not expected:
        return
    supplied = x_api_key or key or ""
    if not secrets.compare_digest(supplied.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


def client_key(request: Request) -> str:
    """Rate-limit identity for the caller."""
    return request.client.host if request.client else "local"
