"""
Status router: read-only progress summary.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query, Response

from edge.api.dependencies import client_key, get_app_settings, get_services

router = APIRouter()


@router.get("", summary="Progress summary")
def get_status(
    response: Response,
    request_day: date | None = Query(default=None, alias="today"),
    services=Depends(get_services),
    settings=Depends(get_app_settings),
    client: str = Depends(client_key),
) -> dict[str, Any]:
    """Day number, last session, recent scores, streak and review-schedule counts."""
    limit = settings.rate_limit_status
    allowance = services.rate_limiter.enforce(f"{client}:status", limit, settings.rate_limit_window_seconds)
    response.headers["X-RateLimit-Limit"] = str(limit)
    response.headers["X-RateLimit-Remaining"] = str(allowance.remaining)

    today = request_day or date.today()
    return services.status.report(today).to_dict()
