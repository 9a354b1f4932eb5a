"""
Prompt builders for each session phase.

Pure string templates. Nothing here calls the model, reads storage or keeps
state; the controller passes in the ledger digest and selections.
"""

from __future__ import annotations

from typing import Sequence

from edge.core.extractor import NARRATIVE_MARKER, SCORES_MARKER
from edge.core.models import SCORE_DIMENSIONS, Message, SessionScores
from edge.learning.concepts import Concept
from edge.learning.personas import Persona

OPENING_TRIGGER = "[Session begins. You speak first. Deliver your opening line in character.]"

RECALL_QUESTION = "Before we begin: in one sentence, what is {name} and when would you deploy it?"

SKIPPED_CHECKIN_REPLY = "No problem. The mission you're about to get will give you a clean shot."

COACH_UNAVAILABLE = "Coach unavailable right now. Trust your instincts."

_SCENARIO_SETTINGS = {
    "sceptical-investor": (
        "A first pitch meeting. You have skimmed the deck and seen several similar pitches "
        "this quarter. You have thirty minutes and no intention of being polite about weak answers."
    ),
    "political-stakeholder": (
        "A meeting at a large bank's headquarters about a possible design partnership. "
        "You were asked to take the meeting by someone senior and you will not commit to anything today."
    ),
    "resistant-report": (
        "A one-to-one performance review. Your numbers are well behind target and you intend to "
        "keep the conversation on anything but them."
    ),
    "hostile-negotiator": (
        "A commercial negotiation over an annual licence. Your team wants the product; "
        "your job is to make the vendor feel lucky to sign at any price."
    ),
    "alpha-peer": (
        "A strategy meeting where the go-to-market plan for next quarter is being presented. "
        "You think the plan is too sales-led and you will say so."
    ),
    "consultancy-gatekeeper": (
        "A partnership discussion in your firm's meeting room. Clients keep asking about this space, "
        "but the firm's brand is not something you lend lightly."
    ),
}

_DEFAULT_SETTING = "A high-stakes professional conversation where you hold the power and know it."


def _dimension_label(name: str) -> str:
    return name.replace("_", " ")


def format_transcript(transcript: Sequence[Message], assistant_label: str = "COUNTERPART") -> str:
    return "\n\n".join(
        f"{assistant_label if turn.role == 'assistant' else 'USER'}: {turn.content}" for turn in transcript
    )


# =============================================================================
# Persistent context
# =============================================================================


def build_context(ledger_digest: str, completed_labels: Sequence[str]) -> str:
    """Context block prefixed to every system prompt."""
    covered = ", ".join(completed_labels) if completed_labels else "None yet. This is Day 1."
    return (
        "You are part of a daily influence training system for senior professionals. "
        "The user is time-poor, direct, and wants blunt, specific feedback without reassurance.\n\n"
        f"{ledger_digest}\n\n"
        f"CONCEPTS COVERED TO DATE: {covered}"
    )


# =============================================================================
# Phase prompts
# =============================================================================


def build_checkin_prompt(previous_mission: str, outcome_type: str, report: str) -> str:
    return f"""You are a concise executive coach closing yesterday's loop before today's session.

YESTERDAY'S MISSION: "{previous_mission}"
OUTCOME: {outcome_type}
THE USER SAID: "{report or 'nothing further'}"

Reply with exactly ONE sentence that connects yesterday's field result to today's practice.
No pleasantries. Warm but direct.
End with a newline then: [CHECKIN_TYPE: {outcome_type.upper()}]"""


def build_lesson_prompt(concept: Concept) -> str:
    return f"""You are the lesson engine. Teach today's concept.

CONCEPT: {concept.name}
DOMAIN: {concept.domain}
SOURCE: {concept.source}
SUMMARY: {concept.description}

Use exactly these three headers:

## The Principle
What the concept is and why it works. Attribute the source.

## The Play
One vivid, specific real-world example: the setup, the move, the outcome.

## The Counter
How to recognise this technique being used on you, and the exact counter-move.

400-600 words of prose. No bullet points."""


def build_retrieval_prompt(concept: Concept) -> str:
    question = RECALL_QUESTION.format(name=concept.name)
    return f"""You are a strict examiner. The user has just read a lesson on "{concept.name}" ({concept.source}).

You asked: "{question}"

Evaluate their answer for both what the concept is and when to deploy it.
- Correct: reply "Clear. Let's go."
- Partly correct: one sentence of correction, then "Let's go."
- Wrong or vague: two sentences naming what they missed. Do not say "Let's go."

Keep it under 40 words. Do not re-teach the lesson.
Finish with one line on its own: READY: yes  (or READY: no if the answer was wrong or vague)"""


def build_scenario(concept: Concept, persona: Persona) -> str:
    """Scenario framing for the roleplay; fixed for the whole session."""
    setting = _SCENARIO_SETTINGS.get(persona.id, _DEFAULT_SETTING)
    return f"{setting} The conversation will test {concept.name} ({concept.domain})."


def build_roleplay_prompt(concept: Concept, persona: Persona, scenario: str) -> str:
    tactics = "\n".join(f"{i}. {t}" for i, t in enumerate(persona.tactics, start=1))
    pressure = "\n".join(f"{i}. {p}" for i, p in enumerate(persona.pressure_points, start=1))
    return f"""You are {persona.name}. {persona.description}
You are a real person with your own agenda. You are not an assistant.

== HOW YOU COMMUNICATE ==
{persona.communication_style}

== WHAT YOU SECRETLY WANT ==
{persona.hidden_motivation}
Never state this directly.

== YOUR TACTICS ==
{tactics}

== WHAT COULD MOVE YOU ==
{pressure}

== THE SCENARIO ==
{scenario}

== CALIBRATION (you cannot see this) ==
The user is practising {concept.name}: {concept.description}
Concede ground only when it is earned.

== RULES ==
Never break character. No meta-commentary. Two to four sentences per reply.
Use at least one tactic per reply. Escalate if the user is vague.
You speak first: open with pressure, not pleasantries."""


def build_coach_prompt(concept: Concept, transcript: Sequence[Message]) -> str:
    return f"""You are a tactical advisor watching a live conversation. The user has asked for help.

CONCEPT BEING PRACTISED: {concept.name} ({concept.source}): {concept.description}

CONVERSATION SO FAR:
{format_transcript(transcript) or '(nothing yet)'}

Name the tactic the counterpart just used, then give 2-3 numbered moves for the user's NEXT turn,
each with the exact words to say and one sentence on why it works now. Under 150 words. No preamble."""


def build_debrief_prompt(
    concept: Concept,
    persona: Persona,
    transcript: Sequence[Message],
    ledger_count: int,
    ledger_digest: str,
) -> str:
    if ledger_count >= 3:
        history = (
            f"You have {ledger_count} prior sessions. Call out recurring patterns with day references.\n\n"
            f"SESSION HISTORY:\n{ledger_digest}"
        )
    else:
        history = f"This is session {ledger_count + 1}. Focus only on this session."

    dimensions = "\n".join(f"{name}: [1-5]" for name in SCORE_DIMENSIONS)
    sections = "\n".join(f"**{_dimension_label(name).upper()}**" for name in SCORE_DIMENSIONS)

    return f"""You are a blunt executive coach. Reference exact turns. Never soften.

TODAY'S CONCEPT: {concept.label}
{concept.description}

THE COUNTERPART: {persona.name}
Tactics used: {', '.join(persona.tactics)}

{history}

THE TRANSCRIPT:
{format_transcript(transcript, persona.name.upper())}

Give 1-2 sentences under each of these headers:
{sections}

Then **THE REPLAY**: 1-2 moments where a different choice would have changed the outcome, with the exact
alternative words.

Use the full 1-5 range. 3 is competent but unremarkable; 5 is rare.

End with this exact block and nothing after it:

{SCORES_MARKER}
{dimensions}
{NARRATIVE_MARKER}
behavioral_weakness_summary: [exactly 2 sentences]
key_moment: [exactly 1 sentence]"""


def build_mission_prompt(concept: Concept, scores: SessionScores, ledger_digest: str) -> str:
    weakest, value = scores.weakest()
    return f"""You are assigning one field operation for the next 24 hours.

TODAY'S CONCEPT: {concept.label}
{concept.description}

WEAKEST DIMENSION TODAY: {_dimension_label(weakest)} ({value}/5)

{ledger_digest}

The mission must be concrete, tied to a specific kind of meeting or call, observable through the
other person's reaction, low-risk, and aimed at the weakest dimension.

At most 80 words for the mission. Then write "RATIONALE:" on a new line and at most 30 words
connecting it to today's concept. No preamble."""
