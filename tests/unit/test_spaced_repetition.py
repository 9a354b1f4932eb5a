"""
Unit tests for the review scheduler.

Tests cover:
- First and repeat practice intervals
- Ease growth, decay and bounds
- Interval clamping
- Due ordering, mastery and summary counts

Run: pytest tests/unit/test_spaced_repetition.py -v
"""

import json
from datetime import date, timedelta

import pytest

from edge.core.models import ReviewScheduleEntry, SessionScores
from edge.learning.spaced_repetition import ReviewConfig, next_entry, round_half_up

TODAY = date(2025, 3, 10)


def _scores(*values):
    return SessionScores(*values)


def _entry(concept_id="anchoring", last=TODAY, ease=2.5, interval=3, count=1):
    return ReviewScheduleEntry(
        concept_id=concept_id,
        last_practiced=last,
        ease_factor=ease,
        interval_days=interval,
        practice_count=count,
        last_average=3.0,
    )


class TestFirstPractice:
    """Test intervals for a concept's first practice."""

    def test_strong_first_practice(self):
        """Average 4.2 keeps ease at 2.5 and schedules a week out."""
        entry = next_entry(None, "anchoring", 4.2, TODAY)

        assert entry.ease_factor == 2.5
        assert entry.interval_days == 7
        assert entry.next_review == TODAY + timedelta(days=7)
        assert entry.practice_count == 1

    @pytest.mark.parametrize("average,interval", [(3.0, 3), (3.99, 3), (2.99, 1), (1.0, 1), (4.0, 7)])
    def test_bands(self, average, interval):
        assert next_entry(None, "x", average, TODAY).interval_days == interval

    def test_last_average_rounded(self):
        assert next_entry(None, "x", 3.4567, TODAY).last_average == 3.46


class TestRepeatPractice:
    def test_strong_repeat(self):
        """Average 4.5 after a 7-day first interval: ease 3.25, interval 23."""
        first = next_entry(None, "anchoring", 4.2, TODAY)
        later = TODAY + timedelta(days=7)

        second = next_entry(first, "anchoring", 4.5, later)

        assert second.ease_factor == pytest.approx(3.25)
        assert second.interval_days == 23
        assert second.next_review == later + timedelta(days=23)
        assert second.practice_count == 2

    def test_adequate_keeps_ease(self):
        entry = next_entry(_entry(interval=3, ease=2.5), "anchoring", 3.4, TODAY)

        assert entry.ease_factor == 2.5
        assert entry.interval_days == 8  # 7.5 rounds half up

    def test_weak_resets_interval(self):
        entry = next_entry(_entry(interval=40, ease=2.5), "anchoring", 2.2, TODAY)

        assert entry.interval_days == 1
        assert entry.ease_factor == pytest.approx(2.0)

    def test_ease_floor(self):
        entry = next_entry(_entry(ease=1.4), "anchoring", 1.0, TODAY)
        assert entry.ease_factor == 1.3

    def test_ease_ceiling(self):
        entry = next_entry(_entry(ease=4.5), "anchoring", 5.0, TODAY)
        assert entry.ease_factor == 5.0

    def test_interval_clamped_over_many_strong_sessions(self):
        entry = None
        day = TODAY
        for _ in range(20):
            entry = next_entry(entry, "anchoring", 5.0, day)
            assert 1 <= entry.interval_days <= 365
            assert 1.3 <= entry.ease_factor <= 5.0
            day = entry.next_review

        assert entry.interval_days == 365

    def test_custom_max_interval(self):
        config = ReviewConfig(max_interval_days=30)
        entry = next_entry(_entry(interval=20, ease=3.0), "anchoring", 4.5, TODAY, config)
        assert entry.interval_days == 30


class TestRounding:
    @pytest.mark.parametrize("value,expected", [(22.75, 23), (7.5, 8), (2.5, 3), (2.49, 2), (1.0, 1)])
    def test_half_up(self, value, expected):
        assert round_half_up(value) == expected


class TestReviewScheduler:
    """Test the persisted scheduler."""

    def test_record_practice_persists(self, scheduler):
        scheduler.record_practice("anchoring", _scores(4, 4, 5, 4, 4), TODAY)

        stored = scheduler.get("anchoring")
        assert stored.interval_days == 7
        assert stored.last_average == 4.2

    def test_second_practice_updates_in_place(self, scheduler):
        scheduler.record_practice("anchoring", _scores(4, 4, 5, 4, 4), TODAY)
        scheduler.record_practice("anchoring", _scores(5, 4, 5, 4, 5), TODAY + timedelta(days=7))

        entries = scheduler.all()
        assert len(entries) == 1
        assert entries[0].interval_days == 23
        assert entries[0].practice_count == 2

    def test_malformed_entry_is_reset(self, scheduler, settings):
        settings.schedule_path.parent.mkdir(parents=True)
        settings.schedule_path.write_text(json.dumps({"kind": "review-schedule", "items": [{"concept_id": "anchoring"}]}))

        entry = scheduler.record_practice("anchoring", SessionScores.uniform(3), TODAY)

        assert entry.practice_count == 1
        assert entry.interval_days == 3
        assert len(scheduler.all()) == 1

    def test_due_most_overdue_first(self, scheduler):
        scheduler.record_practice("loss-aversion", SessionScores.uniform(2), TODAY - timedelta(days=5))
        scheduler.record_practice("anchoring", SessionScores.uniform(2), TODAY - timedelta(days=10))
        scheduler.record_practice("darvo", SessionScores.uniform(5), TODAY)

        due = scheduler.due(TODAY)

        assert [e.concept_id for e in due] == ["anchoring", "loss-aversion"]

    def test_due_ties_broken_by_id(self, scheduler):
        for concept_id in ("reciprocity", "darvo"):
            scheduler.record_practice(concept_id, SessionScores.uniform(2), TODAY - timedelta(days=1))

        assert [e.concept_id for e in scheduler.due(TODAY)] == ["darvo", "reciprocity"]

    def test_due_today_included(self, scheduler):
        scheduler.record_practice("anchoring", SessionScores.uniform(2), TODAY - timedelta(days=1))
        assert len(scheduler.due(TODAY)) == 1

    def test_mastery(self, scheduler):
        assert scheduler.is_mastered(_entry(ease=3.5, count=3)) is True
        assert scheduler.is_mastered(_entry(ease=3.49, count=5)) is False
        assert scheduler.is_mastered(_entry(ease=4.0, count=2)) is False

    def test_summary(self, scheduler):
        day = TODAY - timedelta(days=200)
        for _ in range(3):
            scheduler.record_practice("anchoring", SessionScores.uniform(5), day)
            day += timedelta(days=1)
        scheduler.record_practice("darvo", SessionScores.uniform(4), TODAY)

        summary = scheduler.summary(TODAY)

        assert summary.tracked == 2
        assert summary.due == 1
        assert summary.mastered == 1
        assert summary.to_dict() == {"tracked": 2, "due": 1, "mastered": 1}
