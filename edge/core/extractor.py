"""
Response Extractor: turns free-form generated text into typed results.

Generated debriefs end with two delimited sections:

    ---SCORES---
    technique_application: 3
    ...
    ---LEDGER---
    behavioral_weakness_summary: ...
    key_moment: ...

Every public function here is pure and never raises on malformed text; a
missing marker or field degrades to a documented default. The fallback
functions build the same result types from session activity alone, for when
the generative call itself failed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Sequence

from loguru import logger

from edge.core.errors import MalformedOutputError
from edge.core.models import SCORE_DIMENSIONS, SCORE_MAX, SCORE_MIN, Message, SessionScores

SCORES_MARKER = "---SCORES---"
NARRATIVE_MARKER = "---LEDGER---"

DEFAULT_SCORE = 3

WEAKNESS_PLACEHOLDER = "Unable to extract behavioural summary."
KEY_MOMENT_PLACEHOLDER = "Unable to extract key moment."

FALLBACK_WEAKNESS = (
    "Debrief analysis was unavailable for this session. "
    "Scores were estimated from session activity."
)
FALLBACK_KEY_MOMENT = "No key moment recorded; the debrief could not be generated."
FALLBACK_DEBRIEF_TEXT = (
    "The full debrief could not be generated right now. "
    "Your scores below are estimated from how the session went."
)

NEUTRAL_MISSION = (
    "In your next important conversation, pause for three seconds before answering "
    "the first hard question, and note how the other person fills the silence."
)
NEUTRAL_RATIONALE = "A low-risk observation drill that keeps the daily practice loop intact."

READINESS_PHRASE = "let's go."

_SCORES_SECTION = re.compile(
    re.escape(SCORES_MARKER) + r"\s*(.*?)(?:" + re.escape(NARRATIVE_MARKER) + r"|$)",
    re.DOTALL,
)
_NARRATIVE_SECTION = re.compile(re.escape(NARRATIVE_MARKER) + r"\s*(.*?)(?:```|$)", re.DOTALL)
_WEAKNESS_FIELD = re.compile(
    r"behaviou?ral_weakness_summary\s*:\s*(.*?)(?=key_moment\s*:|$)",
    re.DOTALL | re.IGNORECASE,
)
_KEY_MOMENT_FIELD = re.compile(r"key_moment\s*:\s*(.*)$", re.DOTALL | re.IGNORECASE)
_READY_FIELD = re.compile(r"^\s*READY\s*:\s*(yes|no|true|false)\s*$", re.IGNORECASE | re.MULTILINE)
_RATIONALE_SPLIT = re.compile(r"RATIONALE\s*:", re.IGNORECASE)
_CHECKIN_TAG = re.compile(r"\[CHECKIN_TYPE:\s*([\w-]+)\]")


def _score_pattern(name: str) -> re.Pattern[str]:
    return re.compile(rf"{name}\s*:\s*\[?\s*(\d+)", re.IGNORECASE)


_SCORE_PATTERNS = {name: _score_pattern(name) for name in SCORE_DIMENSIONS}


# =============================================================================
# Result types
# =============================================================================


@dataclass(frozen=True)
class DebriefResult:
    """Scores and narrative fields extracted from a debrief."""

    scores: SessionScores
    weakness_summary: str
    key_moment: str
    display_text: str
    scores_found: bool = True
    narrative_found: bool = True
    fallback: bool = False


@dataclass(frozen=True)
class MissionResult:
    directive: str
    rationale: str
    fallback: bool = False


@dataclass(frozen=True)
class RetrievalVerdict:
    ready: bool
    feedback: str
    explicit: bool


@dataclass(frozen=True)
class ActivitySummary:
    """Counts from the roleplay that drive the fallback scores."""

    total_turns: int
    user_turns: int
    used_coach: bool
    used_skip: bool

    @classmethod
    def from_transcript(
        cls,
        transcript: Sequence[Message],
        commands_used: Iterable[str],
    ) -> ActivitySummary:
        commands = {c.lstrip("/").lower() for c in commands_used}
        return cls(
            total_turns=len(transcript),
            user_turns=sum(1 for turn in transcript if turn.role == "user"),
            used_coach="coach" in commands,
            used_skip="skip" in commands,
        )


# =============================================================================
# Section parsing
# =============================================================================


def _section(text: str, pattern: re.Pattern[str], marker: str) -> str:
    match = pattern.search(text)
    if not match:
        raise MalformedOutputError(f"Marker {marker} not found")
    return match.group(1)


def _parse_score(block: str, name: str) -> int:
    match = _SCORE_PATTERNS[name].search(block)
    if not match:
        return DEFAULT_SCORE
    value = int(match.group(1))
    if not SCORE_MIN <= value <= SCORE_MAX:
        return DEFAULT_SCORE
    return value


def extract_scores(text: str) -> tuple[SessionScores, bool]:
    """
    Extract the five score dimensions.

    Returns:
        (scores, found) where found is False when the scores section was absent
        and every dimension took the default.
    """
    try:
        block = _section(text or "", _SCORES_SECTION, SCORES_MARKER)
    except MalformedOutputError as e:
        logger.warning(f"{e}; using default scores")
        return SessionScores.uniform(DEFAULT_SCORE), False

    return SessionScores(**{name: _parse_score(block, name) for name in SCORE_DIMENSIONS}), True


def extract_narrative(text: str) -> tuple[str, str, bool]:
    """
    Extract (weakness_summary, key_moment, found) from the narrative section.

    A missing sub-section yields an explicit placeholder rather than an error.
    """
    try:
        block = _section(text or "", _NARRATIVE_SECTION, NARRATIVE_MARKER)
    except MalformedOutputError as e:
        logger.warning(f"{e}; using narrative placeholders")
        return WEAKNESS_PLACEHOLDER, KEY_MOMENT_PLACEHOLDER, False

    weakness_match = _WEAKNESS_FIELD.search(block)
    moment_match = _KEY_MOMENT_FIELD.search(block)
    weakness = weakness_match.group(1).strip() if weakness_match else ""
    moment = moment_match.group(1).strip() if moment_match else ""

    return weakness or WEAKNESS_PLACEHOLDER, moment or KEY_MOMENT_PLACEHOLDER, True


def extract_debrief(text: str) -> DebriefResult:
    """Parse a full debrief into scores, narrative fields and display prose."""
    text = text or ""
    scores, scores_found = extract_scores(text)
    weakness, moment, narrative_found = extract_narrative(text)

    marker_index = text.find(SCORES_MARKER)
    display = text[:marker_index] if marker_index != -1 else text

    return DebriefResult(
        scores=scores,
        weakness_summary=weakness,
        key_moment=moment,
        display_text=display.strip(),
        scores_found=scores_found,
        narrative_found=narrative_found,
    )


# =============================================================================
# Deterministic fallbacks
# =============================================================================


def _clamp(value: int, low: int = SCORE_MIN, high: int = SCORE_MAX) -> int:
    return max(low, min(high, value))


def fallback_scores(activity: ActivitySummary) -> SessionScores:
    """Score a session from its activity counts alone."""
    base = _clamp(
        2
        + (1 if activity.user_turns > 4 else 0)
        + (1 if activity.used_coach else 0)
        - (1 if activity.used_skip else 0)
    )
    return SessionScores(
        technique_application=max(1, base - (1 if activity.total_turns < 4 else 0)),
        tactical_awareness=base,
        frame_control=max(1, base - (1 if activity.used_skip else 0)),
        emotional_regulation=min(5, base + (1 if activity.user_turns > 6 else 0)),
        strategic_outcome=max(1, base - (1 if activity.total_turns < 6 else 0)),
    )


def fallback_debrief(activity: ActivitySummary) -> DebriefResult:
    return DebriefResult(
        scores=fallback_scores(activity),
        weakness_summary=FALLBACK_WEAKNESS,
        key_moment=FALLBACK_KEY_MOMENT,
        display_text=FALLBACK_DEBRIEF_TEXT,
        scores_found=False,
        narrative_found=False,
        fallback=True,
    )


def fallback_mission() -> MissionResult:
    return MissionResult(directive=NEUTRAL_MISSION, rationale=NEUTRAL_RATIONALE, fallback=True)


# =============================================================================
# Other phase outputs
# =============================================================================


def extract_mission(text: str) -> MissionResult:
    """Split a mission response on its ``RATIONALE:`` line."""
    text = (text or "").strip()
    parts = _RATIONALE_SPLIT.split(text, maxsplit=1)
    if len(parts) == 2:
        return MissionResult(directive=parts[0].strip(), rationale=parts[1].strip())

    logger.warning("Could not find RATIONALE: section in mission response")
    if not text:
        return fallback_mission()
    return MissionResult(directive=text, rationale="")


def extract_readiness(text: str) -> RetrievalVerdict:
    """
    Read the recall verdict.

    The prompt asks for an explicit ``READY: yes|no`` line. Older responses
    only signal readiness by closing with "Let's go.", which is still honoured
    when the explicit field is missing.
    """
    text = text or ""
    match = _READY_FIELD.search(text)
    if match:
        ready = match.group(1).lower() in ("yes", "true")
        feedback = _READY_FIELD.sub("", text).strip()
        return RetrievalVerdict(ready=ready, feedback=feedback, explicit=True)

    normalized = text.replace("’", "'").lower()
    return RetrievalVerdict(ready=READINESS_PHRASE in normalized, feedback=text.strip(), explicit=False)


def extract_checkin(text: str) -> tuple[str, str | None]:
    """Strip the ``[CHECKIN_TYPE: X]`` tag; returns (reply, tag)."""
    text = text or ""
    match = _CHECKIN_TAG.search(text)
    tag = match.group(1) if match else None
    return _CHECKIN_TAG.sub("", text).strip(), tag
