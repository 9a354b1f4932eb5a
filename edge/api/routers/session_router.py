"""
Session router.

One endpoint per phase. Each takes the caller's snapshot plus that phase's
request and returns the next snapshot with the reply text.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from edge.api.dependencies import client_key, get_app_settings, get_services
from edge.session.phases import (
    CheckInRequest,
    CoachRequest,
    DebriefRequest,
    LessonRequest,
    MissionRequest,
    PhaseResult,
    PhaseSnapshot,
    RetrievalRequest,
    RoleplayRequest,
)

router = APIRouter()


# ========================================
# Request Models
# ========================================


class CheckInCall(BaseModel):
    snapshot: PhaseSnapshot
    request: CheckInRequest


class LessonCall(BaseModel):
    snapshot: PhaseSnapshot
    request: LessonRequest = LessonRequest()


class RetrievalCall(BaseModel):
    snapshot: PhaseSnapshot
    request: RetrievalRequest = RetrievalRequest()


class RoleplayCall(BaseModel):
    snapshot: PhaseSnapshot
    request: RoleplayRequest = RoleplayRequest()


class CoachCall(BaseModel):
    snapshot: PhaseSnapshot
    request: CoachRequest = CoachRequest()


class DebriefCall(BaseModel):
    snapshot: PhaseSnapshot
    request: DebriefRequest = DebriefRequest()


class MissionCall(BaseModel):
    snapshot: PhaseSnapshot
    request: MissionRequest = MissionRequest()


def _submit(call: BaseModel, response: Response, services, client: str) -> PhaseResult:
    result = services.controller.submit(call.snapshot, call.request, client_key=client)
    if result.rate_limit:
        response.headers["X-RateLimit-Limit"] = str(result.rate_limit["limit"])
        response.headers["X-RateLimit-Remaining"] = str(result.rate_limit["remaining"])
    return result


# ========================================
# Lifecycle Endpoints
# ========================================


@router.post("/start", response_model=PhaseResult, summary="Start a session")
def start_session(
    response: Response,
    services=Depends(get_services),
    settings=Depends(get_app_settings),
    client: str = Depends(client_key),
) -> PhaseResult:
    """Open today's session. Begins at check-in when yesterday's mission is unresolved."""
    limit = settings.rate_limit_start
    allowance = services.rate_limiter.enforce(f"{client}:start", limit, settings.rate_limit_window_seconds)
    response.headers["X-RateLimit-Limit"] = str(limit)
    response.headers["X-RateLimit-Remaining"] = str(allowance.remaining)

    return services.controller.start()


@router.post("/checkin", response_model=PhaseResult, summary="Report yesterday's mission")
def checkin(
    call: CheckInCall,
    response: Response,
    services=Depends(get_services),
    client: str = Depends(client_key),
) -> PhaseResult:
    return _submit(call, response, services, client)


@router.post("/lesson", response_model=PhaseResult, summary="Generate today's lesson")
def lesson(
    call: LessonCall,
    response: Response,
    services=Depends(get_services),
    client: str = Depends(client_key),
) -> PhaseResult:
    return _submit(call, response, services, client)


@router.post("/retrieval", response_model=PhaseResult, summary="Recall check")
def retrieval(
    call: RetrievalCall,
    response: Response,
    services=Depends(get_services),
    client: str = Depends(client_key),
) -> PhaseResult:
    """
    Without an answer, returns the recall question. After two unsuccessful
    answers, send ``override: true`` to continue.
    """
    return _submit(call, response, services, client)


@router.post("/roleplay", response_model=PhaseResult, summary="Roleplay turn or control token")
def roleplay(
    call: RoleplayCall,
    response: Response,
    services=Depends(get_services),
    client: str = Depends(client_key),
) -> PhaseResult:
    """
    Send an empty request for the opening line, then one message per turn.
    ``/coach``, ``/reset``, ``/skip`` and ``/finish`` work as messages or as ``command``.
    """
    return _submit(call, response, services, client)


@router.post("/coach", response_model=PhaseResult, summary="Mid-roleplay coaching")
def coach(
    call: CoachCall,
    response: Response,
    services=Depends(get_services),
    client: str = Depends(client_key),
) -> PhaseResult:
    return _submit(call, response, services, client)


@router.post("/debrief", response_model=PhaseResult, summary="Score the roleplay")
def debrief(
    call: DebriefCall,
    response: Response,
    services=Depends(get_services),
    client: str = Depends(client_key),
) -> PhaseResult:
    return _submit(call, response, services, client)


@router.post("/mission", response_model=PhaseResult, summary="Assign the field mission and record the day")
def mission(
    call: MissionCall,
    response: Response,
    services=Depends(get_services),
    client: str = Depends(client_key),
) -> PhaseResult:
    return _submit(call, response, services, client)
