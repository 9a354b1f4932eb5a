"""
Shared value types for the session lifecycle.

SessionRecord and ReviewScheduleEntry are the two persisted shapes; both
round-trip through plain dicts so the JSON collections stay self-describing.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Literal

SCORE_DIMENSIONS: tuple[str, ...] = (
    "technique_application",
    "tactical_awareness",
    "frame_control",
    "emotional_regulation",
    "strategic_outcome",
)

SCORE_MIN = 1
SCORE_MAX = 5


class MissionStatus(str, Enum):
    """How yesterday's mission went, as reported at check-in."""

    PENDING = "pending"
    EXECUTED_CLEAR = "executed-clear"
    EXECUTED_UNCLEAR = "executed-unclear"
    SKIPPED = "skipped"


NOT_EXECUTED = "NOT EXECUTED"


@dataclass(frozen=True)
class SessionScores:
    """Five roleplay dimensions, each an integer in [1, 5]."""

    technique_application: int
    tactical_awareness: int
    frame_control: int
    emotional_regulation: int
    strategic_outcome: int

    def __post_init__(self) -> None:
        for name in SCORE_DIMENSIONS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")
            if not SCORE_MIN <= value <= SCORE_MAX:
                raise ValueError(f"{name} must be within [{SCORE_MIN}, {SCORE_MAX}], got {value}")

    @classmethod
    def uniform(cls, value: int) -> SessionScores:
        return cls(**{name: value for name in SCORE_DIMENSIONS})

    def average(self) -> float:
        return sum(self.values()) / len(SCORE_DIMENSIONS)

    def values(self) -> list[int]:
        return [getattr(self, name) for name in SCORE_DIMENSIONS]

    def weakest(self) -> tuple[str, int]:
        """Lowest-scoring dimension; the first one wins a tie."""
        return min(((name, getattr(self, name)) for name in SCORE_DIMENSIONS), key=lambda item: item[1])

    def to_dict(self) -> dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionScores:
        missing = [name for name in SCORE_DIMENSIONS if name not in data]
        if missing:
            raise ValueError(f"Missing score dimensions: {', '.join(missing)}")
        return cls(**{name: data[name] for name in SCORE_DIMENSIONS})


@dataclass(frozen=True)
class Message:
    """One role-tagged transcript turn."""

    role: Literal["user", "assistant"]
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class SessionRecord:
    """One completed day in the ledger."""

    day: int
    date: date
    concept: str
    concept_id: str
    domain: str
    persona: str
    difficulty: int
    scores: SessionScores
    weakness_summary: str
    key_moment: str
    mission: str
    mission_outcome: str = ""
    mission_status: MissionStatus = MissionStatus.PENDING
    commands_used: tuple[str, ...] = field(default_factory=tuple)
    completed: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "day": self.day,
            "date": self.date.isoformat(),
            "concept": self.concept,
            "concept_id": self.concept_id,
            "domain": self.domain,
            "persona": self.persona,
            "difficulty": self.difficulty,
            "scores": self.scores.to_dict(),
            "weakness_summary": self.weakness_summary,
            "key_moment": self.key_moment,
            "mission": self.mission,
            "mission_outcome": self.mission_outcome,
            "mission_status": self.mission_status.value,
            "commands_used": list(self.commands_used),
            "completed": self.completed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionRecord:
        return cls(
            day=int(data["day"]),
            date=date.fromisoformat(data["date"]),
            concept=data["concept"],
            concept_id=data.get("concept_id", ""),
            domain=data.get("domain", ""),
            persona=data.get("persona", ""),
            difficulty=int(data.get("difficulty", 1)),
            scores=SessionScores.from_dict(data["scores"]),
            weakness_summary=data.get("weakness_summary", ""),
            key_moment=data.get("key_moment", ""),
            mission=data.get("mission", ""),
            mission_outcome=data.get("mission_outcome", ""),
            mission_status=MissionStatus(data.get("mission_status", MissionStatus.PENDING.value)),
            commands_used=tuple(data.get("commands_used", ())),
            completed=bool(data.get("completed", True)),
        )


@dataclass(frozen=True)
class ReviewScheduleEntry:
    """Review state for one practiced concept.

    ``next_review`` is always derived from ``last_practiced`` and
    ``interval_days``; it is written out for readability but never read back.
    """

    concept_id: str
    last_practiced: date
    ease_factor: float
    interval_days: int
    practice_count: int
    last_average: float

    @property
    def next_review(self) -> date:
        return self.last_practiced + timedelta(days=self.interval_days)

    def days_overdue(self, today: date) -> int:
        return (today - self.next_review).days

    def is_due(self, today: date) -> bool:
        return self.next_review <= today

    def to_dict(self) -> dict[str, Any]:
        return {
            "concept_id": self.concept_id,
            "last_practiced": self.last_practiced.isoformat(),
            "ease_factor": self.ease_factor,
            "interval_days": self.interval_days,
            "next_review": self.next_review.isoformat(),
            "practice_count": self.practice_count,
            "last_average": self.last_average,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReviewScheduleEntry:
        return cls(
            concept_id=data["concept_id"],
            last_practiced=date.fromisoformat(data["last_practiced"]),
            ease_factor=float(data["ease_factor"]),
            interval_days=int(data["interval_days"]),
            practice_count=int(data["practice_count"]),
            last_average=float(data.get("last_average", 0.0)),
        )
