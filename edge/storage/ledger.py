"""
Ledger Store: the append-only journal of completed sessions.

One SessionRecord per day. Records are never deleted or reordered; the only
mutation allowed is the one-time mission outcome written by the following
day's check-in.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

from loguru import logger

from edge.core.errors import ValidationError
from edge.core.models import MissionStatus, SessionRecord, SessionScores
from edge.storage.json_store import JsonCollection

EMPTY_LEDGER_SENTINEL = "No prior sessions recorded."
DIGEST_HEADER = "## Recent Session History"


class LedgerStore:
    """Durable session history backed by a JSON collection."""

    def __init__(self, path: Path, lock_timeout: float = 10.0):
        self._collection = JsonCollection(path, kind="ledger", lock_timeout=lock_timeout)

    @property
    def path(self) -> Path:
        return self._collection.path

    # =========================================================================
    # Reads
    # =========================================================================

    def read_all(self) -> list[SessionRecord]:
        """All records in day order. Unparseable entries are logged and skipped."""
        records = []
        for raw in self._collection.read():
            try:
                records.append(SessionRecord.from_dict(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed ledger entry {raw.get('day', '?')}: {e}")
        return records

    def count(self) -> int:
        return len(self._collection.read())

    def last(self) -> SessionRecord | None:
        records = self.read_all()
        return records[-1] if records else None

    def completed_concept_ids(self) -> set[str]:
        return {r.concept_id for r in self.read_all() if r.completed and r.concept_id}

    def recent_scores(self, n: int = 7) -> list[SessionScores]:
        """Scores of the last ``n`` records, oldest first."""
        if n <= 0:
            return []
        return [r.scores for r in self.read_all()[-n:]]

    def compact(self, n: int = 7) -> str:
        """
        Render the ``n`` most recent sessions as a prompt digest.

        Only the concept label, weakness summary and mission outcome are
        included; scores and other metadata never leave the ledger this way.
        """
        records = self.read_all()
        if not records:
            return EMPTY_LEDGER_SENTINEL

        recent = records[-n:] if n > 0 else []
        lines = [DIGEST_HEADER, ""]
        for record in recent:
            lines.append(f"- **{record.concept}**")
            lines.append(f"  - Weakness: {record.weakness_summary or 'n/a'}")
            lines.append(f"  - Mission outcome: {record.mission_outcome or 'pending'}")
        return "\n".join(lines)

    def streak(self, today: date) -> int:
        """
        Consecutive practice days ending at the most recent record.

        Zero when the ledger is empty or the last practice was before yesterday.
        Several records on one date count once.
        """
        dates = sorted({r.date for r in self.read_all()}, reverse=True)
        if not dates or (today - dates[0]).days > 1:
            return 0

        streak = 1
        for newer, older in zip(dates, dates[1:]):
            if (newer - older).days > 1:
                break
            streak += 1
        return streak

    # =========================================================================
    # Writes
    # =========================================================================

    def append(self, record: SessionRecord) -> SessionRecord:
        """Append a record, assigning its day as count + 1."""
        with self._collection.transaction() as items:
            stored = SessionRecord.from_dict({**record.to_dict(), "day": len(items) + 1})
            items.append(stored.to_dict())
        logger.info(f"Ledger: recorded day {stored.day} ({stored.concept})")
        return stored

    def mutate_last_outcome(self, outcome: str, status: MissionStatus) -> SessionRecord:
        """
        Set the most recent record's mission outcome.

        Raises:
            ValidationError: ledger is empty, status is pending, or the outcome
                was already recorded
        """
        if status is MissionStatus.PENDING:
            raise ValidationError("Mission outcome status cannot be 'pending'")

        with self._collection.transaction() as items:
            index, current = _last_parseable(items)
            if current.mission_status is not MissionStatus.PENDING:
                raise ValidationError(f"Mission outcome for day {current.day} is already recorded")

            updated = SessionRecord.from_dict(
                {**current.to_dict(), "mission_outcome": outcome, "mission_status": status.value}
            )
            items[index] = updated.to_dict()

        logger.info(f"Ledger: day {updated.day} mission marked {status.value}")
        return updated


def _last_parseable(items: list[dict]) -> tuple[int, SessionRecord]:
    """Newest entry that parses, matching what ``LedgerStore.last`` reports."""
    for index in range(len(items) - 1, -1, -1):
        try:
            return index, SessionRecord.from_dict(items[index])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed ledger entry {items[index].get('day', '?')}: {e}")
    raise ValidationError("No session to record a mission outcome against")
