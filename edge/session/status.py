"""
Status query surface: a read-only summary of progress for dashboards and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from edge.core.models import SessionRecord, SessionScores
from edge.learning.spaced_repetition import ReviewScheduler, ScheduleSummary
from edge.storage.ledger import LedgerStore


@dataclass(frozen=True)
class StatusReport:
    day_number: int
    last_record: SessionRecord | None
    recent_scores: list[SessionScores]
    streak: int
    schedule: ScheduleSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "day_number": self.day_number,
            "last_record": self.last_record.to_dict() if self.last_record else None,
            "recent_scores": [s.to_dict() for s in self.recent_scores],
            "streak": self.streak,
            "schedule": self.schedule.to_dict(),
        }


class StatusService:
    """Builds StatusReport from the ledger and review schedule."""

    def __init__(self, ledger: LedgerStore, scheduler: ReviewScheduler, recent: int = 7):
        self.ledger = ledger
        self.scheduler = scheduler
        self.recent = recent

    def report(self, today: date) -> StatusReport:
        records = self.ledger.read_all()
        return StatusReport(
            day_number=self.ledger.count() + 1,
            last_record=records[-1] if records else None,
            recent_scores=[r.scores for r in records[-self.recent :]] if self.recent > 0 else [],
            streak=self.ledger.streak(today),
            schedule=self.scheduler.summary(today),
        )
