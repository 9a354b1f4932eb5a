"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings  # noqa: E402
from edge.core.models import MissionStatus, SessionRecord, SessionScores  # noqa: E402
from edge.core.rate_limit import RateLimiter  # noqa: E402
from edge.learning.spaced_repetition import ReviewScheduler  # noqa: E402
from edge.session.controller import PhaseController  # noqa: E402
from edge.storage.ledger import LedgerStore  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (FastAPI TestClient, temp storage)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        path = str(item.fspath)
        if "unit" in path:
            item.add_marker(pytest.mark.unit)
        elif "integration" in path:
            item.add_marker(pytest.mark.integration)
        elif "smoke" in path:
            item.add_marker(pytest.mark.smoke)


# =============================================================================
# Fakes
# =============================================================================


DEBRIEF_TEXT = """Strong opening, weak middle.

**TECHNIQUE APPLICATION**
You anchored early in Turn 2.

---SCORES---
technique_application: 4
tactical_awareness: 3
frame_control: 4
emotional_regulation: 5
strategic_outcome: 4
---LEDGER---
behavioral_weakness_summary: You conceded the frame when challenged on numbers. You filled silences instead of holding them.
key_moment: In Turn 3 you justified the price instead of restating the anchor.
"""

MISSION_TEXT = (
    "In your next pricing call, state your number first and stay silent for five seconds.\n"
    "RATIONALE: Practises anchoring while exercising frame control."
)


class FakeTextClient:
    """
    Stand-in for GenerativeTextClient.

    ``responses`` maps a phase name to a string, an exception class, or a
    list of those consumed in order (the last item repeats). Exception
    classes are instantiated fresh on every call.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    def _next(self, phase):
        value = self.responses.get(phase, f"[{phase} reply]")
        if isinstance(value, list):
            value = value.pop(0) if len(value) > 1 else value[0]
        return value

    def stream(self, system, messages, config):
        self.calls.append({"system": system, "messages": list(messages), "config": config})
        value = self._next(config.phase)
        if isinstance(value, type) and issubclass(value, Exception):
            raise value(f"{config.phase} failed")
        yield value

    def generate(self, system, messages, config):
        return "".join(self.stream(system, messages, config))

    def phases(self):
        return [call["config"].phase for call in self.calls]


class FakeClock:
    """Settable clock returning aware datetimes."""

    def __init__(self, start=None):
        self.now = start or datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def settings(tmp_path):
    """Settings pointed at a temp data dir, isolated from any .env file."""
    return Settings(
        _env_file=None,
        data_dir=tmp_path / "data",
        anthropic_api_key=None,
        edge_api_key=None,
    )


@pytest.fixture
def ledger(settings):
    return LedgerStore(settings.ledger_path)


@pytest.fixture
def scheduler(settings):
    return ReviewScheduler(settings.schedule_path)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def text_client():
    return FakeTextClient(
        {
            "checkin": "That pause shifted the dynamic.\n[CHECKIN_TYPE: EXECUTED-CLEAR]",
            "lesson": "## The Principle\nAnchors drag estimates.",
            "retrieval": "Clear. Let's go.\nREADY: yes",
            "roleplay": "You have two minutes. Convince me.",
            "coach": "1. Mirror their last three words.",
            "debrief": DEBRIEF_TEXT,
            "mission": MISSION_TEXT,
        }
    )


@pytest.fixture
def controller(ledger, scheduler, text_client, settings, clock):
    return PhaseController(
        ledger,
        scheduler,
        text_client,
        RateLimiter(),
        settings,
        rng=random.Random(7),
        clock=clock,
    )


@pytest.fixture
def make_record():
    """Factory for SessionRecord with sensible defaults."""

    def _make(day=1, on=date(2025, 3, 9), concept_id="anchoring", scores=3, **overrides):
        fields = dict(
            day=day,
            date=on,
            concept=f"{concept_id.title()} (Kahneman)",
            concept_id=concept_id,
            domain="Behavioural Psychology & Cognitive Bias",
            persona="The Sceptical Investor",
            difficulty=5,
            scores=SessionScores.uniform(scores) if isinstance(scores, int) else scores,
            weakness_summary=f"Weakness on day {day}.",
            key_moment=f"Moment on day {day}.",
            mission=f"Mission for day {day}.",
            mission_status=MissionStatus.PENDING,
        )
        fields.update(overrides)
        return SessionRecord(**fields)

    return _make


@pytest.fixture
def debrief_text():
    return DEBRIEF_TEXT


@pytest.fixture
def mission_text():
    return MISSION_TEXT
