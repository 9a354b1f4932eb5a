"""
Spaced-repetition review scheduler (SM-2 derived).

Each concept practiced gets one ReviewScheduleEntry. A session's five scores
are averaged and treated like a single SM-2 grade band:

    avg >= 4      strong     ease grows by 30%, interval stretches
    3 <= avg < 4  adequate   ease unchanged, interval stretches
    avg < 3       weak       ease shrinks by 20%, interval resets to 1 day

First practice places the concept 7, 3 or 1 days out with ease 2.5.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from loguru import logger

from edge.core.models import ReviewScheduleEntry, SessionScores
from edge.storage.json_store import JsonCollection

# =============================================================================
# Update rule
# =============================================================================


@dataclass
class ReviewConfig:
    """Configuration for the review update rule."""

    initial_ease: float = 2.5
    minimum_ease: float = 1.3
    maximum_ease: float = 5.0
    strong_growth: float = 1.3
    weak_decay: float = 0.8
    strong_threshold: float = 4.0
    adequate_threshold: float = 3.0
    first_interval_strong: int = 7
    first_interval_adequate: int = 3
    first_interval_weak: int = 1
    max_interval_days: int = 365
    mastery_ease: float = 3.5
    mastery_practice_count: int = 3


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def next_entry(
    previous: ReviewScheduleEntry | None,
    concept_id: str,
    average: float,
    today: date,
    config: ReviewConfig | None = None,
) -> ReviewScheduleEntry:
    """
    Compute the schedule entry after one practice.

    Args:
        previous: Existing entry, or None for a first practice
        concept_id: Concept being practiced
        average: Mean of the session's five scores
        today: Practice date
        config: Update-rule constants

    Returns:
        New entry with interval clamped to [1, max_interval_days]
    """
    config = config or ReviewConfig()

    if previous is None:
        ease = config.initial_ease
        if average >= config.strong_threshold:
            interval = config.first_interval_strong
        elif average >= config.adequate_threshold:
            interval = config.first_interval_adequate
        else:
            interval = config.first_interval_weak
        practice_count = 1
    else:
        ease = previous.ease_factor
        if average >= config.strong_threshold:
            ease = min(ease * config.strong_growth, config.maximum_ease)
            interval = round_half_up(previous.interval_days * ease)
        elif average >= config.adequate_threshold:
            interval = round_half_up(previous.interval_days * ease)
        else:
            ease = max(ease * config.weak_decay, config.minimum_ease)
            interval = 1
        practice_count = previous.practice_count + 1

    interval = max(1, min(interval, config.max_interval_days))

    return ReviewScheduleEntry(
        concept_id=concept_id,
        last_practiced=today,
        ease_factor=ease,
        interval_days=interval,
        practice_count=practice_count,
        last_average=round(average, 2),
    )


# =============================================================================
# Persistent scheduler
# =============================================================================


@dataclass(frozen=True)
class ScheduleSummary:
    tracked: int
    due: int
    mastered: int

    def to_dict(self) -> dict[str, int]:
        return {"tracked": self.tracked, "due": self.due, "mastered": self.mastered}


class ReviewScheduler:
    """Per-concept review timing persisted as a JSON collection."""

    def __init__(
        self,
        path: Path,
        config: ReviewConfig | None = None,
        lock_timeout: float = 10.0,
    ):
        self.config = config or ReviewConfig()
        self._collection = JsonCollection(path, kind="review-schedule", lock_timeout=lock_timeout)

    def all(self) -> list[ReviewScheduleEntry]:
        entries = []
        for raw in self._collection.read():
            try:
                entries.append(ReviewScheduleEntry.from_dict(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed schedule entry {raw.get('concept_id', '?')}: {e}")
        return entries

    def get(self, concept_id: str) -> ReviewScheduleEntry | None:
        for entry in self.all():
            if entry.concept_id == concept_id:
                return entry
        return None

    def record_practice(
        self,
        concept_id: str,
        scores: SessionScores,
        today: date,
    ) -> ReviewScheduleEntry:
        """Apply one practice result and persist the updated entry."""
        with self._collection.transaction() as items:
            index = next(
                (i for i, raw in enumerate(items) if raw.get("concept_id") == concept_id),
                None,
            )
            previous = None
            if index is not None:
                try:
                    previous = ReviewScheduleEntry.from_dict(items[index])
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"Resetting malformed schedule entry {concept_id}: {e}")

            entry = next_entry(previous, concept_id, scores.average(), today, self.config)

            if index is None:
                items.append(entry.to_dict())
            else:
                items[index] = entry.to_dict()

        logger.debug(
            f"Scheduled {concept_id}: ease={entry.ease_factor:.2f} "
            f"interval={entry.interval_days}d next={entry.next_review}"
        )
        return entry

    def due(self, today: date) -> list[ReviewScheduleEntry]:
        """Entries due on or before ``today``, most overdue first."""
        due = [e for e in self.all() if e.is_due(today)]
        return sorted(due, key=lambda e: (-e.days_overdue(today), e.concept_id))

    def is_mastered(self, entry: ReviewScheduleEntry) -> bool:
        return (
            entry.ease_factor >= self.config.mastery_ease
            and entry.practice_count >= self.config.mastery_practice_count
        )

    def summary(self, today: date) -> ScheduleSummary:
        entries = self.all()
        return ScheduleSummary(
            tracked=len(entries),
            due=sum(1 for e in entries if e.is_due(today)),
            mastered=sum(1 for e in entries if self.is_mastered(e)),
        )
