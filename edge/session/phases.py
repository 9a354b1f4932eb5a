"""
Phase types: the phase enum, the caller-held snapshot, and one explicit
request model per phase endpoint.

Requests form a discriminated union on ``kind`` so a body is validated
against exactly one shape before the controller sees it.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from edge.core.models import Message


class Phase(str, Enum):
    CHECKIN = "checkin"
    LESSON = "lesson"
    RETRIEVAL = "retrieval"
    ROLEPLAY = "roleplay"
    DEBRIEF = "debrief"
    MISSION = "mission"
    COMPLETE = "complete"


class TranscriptTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str

    def to_message(self) -> Message:
        return Message(role=self.role, content=self.content)


class PhaseSnapshot(BaseModel):
    """
    Everything the controller needs to resume a session.

    The caller keeps the latest snapshot (including the one attached to an
    error) and sends it back with the next request.
    """

    session_id: str
    phase: Phase
    day: int = Field(ge=1)
    captured_at: datetime

    # Lesson / retrieval
    concept_id: Optional[str] = None
    is_review: bool = False
    lesson_text: Optional[str] = None
    retrieval_attempts: int = 0
    retrieval_ready: bool = False

    # Roleplay
    persona_id: Optional[str] = None
    scenario: Optional[str] = None
    transcript: list[TranscriptTurn] = Field(default_factory=list)
    commands_used: list[str] = Field(default_factory=list)

    # Check-in
    checkin_status: Optional[str] = None

    # Debrief
    debrief_failures: int = 0
    debrief_text: Optional[str] = None
    scores: Optional[dict[str, int]] = None
    weakness_summary: Optional[str] = None
    key_moment: Optional[str] = None
    debrief_fallback: bool = False

    # Mission / completion
    mission_failures: int = 0
    mission: Optional[str] = None
    rationale: Optional[str] = None
    recorded_day: Optional[int] = None

    def is_stale(self, now: datetime, max_age_hours: int) -> bool:
        captured = self.captured_at
        if captured.tzinfo is None:
            captured = captured.replace(tzinfo=now.tzinfo)
        return now - captured > timedelta(hours=max_age_hours)

    def messages(self) -> list[Message]:
        return [turn.to_message() for turn in self.transcript]

    def user_turns(self) -> int:
        return sum(1 for turn in self.transcript if turn.role == "user")


# =============================================================================
# Requests
# =============================================================================


class CheckInRequest(BaseModel):
    kind: Literal["checkin"] = "checkin"
    outcome: Literal["executed-clear", "executed-unclear", "skipped"]
    report: str = ""


class LessonRequest(BaseModel):
    kind: Literal["lesson"] = "lesson"
    concept_id: Optional[str] = None


class RetrievalRequest(BaseModel):
    kind: Literal["retrieval"] = "retrieval"
    answer: Optional[str] = None
    override: bool = False


class RoleplayRequest(BaseModel):
    kind: Literal["roleplay"] = "roleplay"
    message: Optional[str] = None
    command: Optional[Literal["coach", "reset", "skip", "finish", "done"]] = None


class CoachRequest(BaseModel):
    kind: Literal["coach"] = "coach"


class DebriefRequest(BaseModel):
    kind: Literal["debrief"] = "debrief"


class MissionRequest(BaseModel):
    kind: Literal["mission"] = "mission"


PhaseRequest = Annotated[
    Union[
        CheckInRequest,
        LessonRequest,
        RetrievalRequest,
        RoleplayRequest,
        CoachRequest,
        DebriefRequest,
        MissionRequest,
    ],
    Field(discriminator="kind"),
]

# Phase each request kind is valid in
REQUEST_PHASES: dict[str, Phase] = {
    "checkin": Phase.CHECKIN,
    "lesson": Phase.LESSON,
    "retrieval": Phase.RETRIEVAL,
    "roleplay": Phase.ROLEPLAY,
    "coach": Phase.ROLEPLAY,
    "debrief": Phase.DEBRIEF,
    "mission": Phase.MISSION,
}


class PhaseResult(BaseModel):
    snapshot: PhaseSnapshot
    reply: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    # {"limit", "remaining"} for response headers; not serialised
    rate_limit: Optional[dict[str, int]] = Field(default=None, exclude=True)
