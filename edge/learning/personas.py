"""
Roleplay counterpart archetypes.

Each persona is a brief the roleplay prompt injects verbatim. Difficulty is
the number of tactics the persona carries, clamped to 1-5.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field

from edge.learning.concepts import Concept


@dataclass(frozen=True)
class Persona:
    id: str
    name: str
    description: str
    communication_style: str
    hidden_motivation: str
    pressure_points: tuple[str, ...] = field(default_factory=tuple)
    tactics: tuple[str, ...] = field(default_factory=tuple)

    @property
    def difficulty(self) -> int:
        return max(1, min(5, len(self.tactics)))


PERSONAS: tuple[Persona, ...] = (
    Persona(
        id="sceptical-investor",
        name="The Sceptical Investor",
        description="A venture partner who has heard every pitch and uses scepticism as a filter.",
        communication_style="Clipped sentences, pointed questions, long silences after bold claims.",
        hidden_motivation="Wants to invest but needs proof the founder will not fold under pressure.",
        pressure_points=(
            "Respects being told plainly that he is stress-testing conviction",
            "Leans in when the founder can say 'I don't know' without flinching",
        ),
        tactics=(
            "Rapid-fire objections to overload",
            "Deliberate silence after a big claim",
            "Dismissive comparison with other pitches",
            "Anchoring on low comparables",
            "Questioning the founder personally",
        ),
    ),
    Persona(
        id="political-stakeholder",
        name="The Political Stakeholder",
        description="A senior corporate sponsor who never commits without a committee behind her.",
        communication_style="Warm, conditional, euphemistic. Enthusiastic without committing resources.",
        hidden_motivation="Interested, but terrified of owning a failed initiative.",
        pressure_points=(
            "Moves when inaction is framed as the bigger risk",
            "Softens when handed language she can reuse with her committee",
        ),
        tactics=(
            "Committee deferral",
            "Scope creep",
            "Manufactured complexity",
            "Calendar weaponisation",
        ),
    ),
    Persona(
        id="resistant-report",
        name="The Resistant Report",
        description="A charming, well-liked team member who is well behind target and deflects expertly.",
        communication_style="Self-deprecating humour, shared history, rhetorical questions.",
        hidden_motivation="Believes the targets are unfair and is testing whether charm will work.",
        pressure_points=(
            "Crumbles when confronted with specific data",
            "Responds to calm consequences stated without emotion",
        ),
        tactics=(
            "Whataboutism",
            "Victimhood positioning",
            "Weaponising team morale",
            "Charm offensive",
            "Moving the goalposts",
        ),
    ),
    Persona(
        id="hostile-negotiator",
        name="The Hostile Negotiator",
        description="A procurement chief who treats every exchange as zero-sum extraction.",
        communication_style="Slow, measured, comfortable with long pauses.",
        hidden_motivation="Needs the deal this quarter but must be seen to win concessions.",
        pressure_points=(
            "Unnerved by silence returned after an extreme anchor",
            "Destabilised when his tactics are named out loud",
        ),
        tactics=(
            "Extreme anchoring",
            "Artificial deadlines",
            "Good cop, bad cop",
            "Walk-away threats",
            "Nibbling",
            "Strategic silence",
        ),
    ),
    Persona(
        id="alpha-peer",
        name="The Alpha Peer",
        description="A technical co-founder who undermines commercial leadership through data and reframes.",
        communication_style="Precise and analytical. Interrupts to 'add context'.",
        hidden_motivation="Wants decision-making to shift towards product and engineering.",
        pressure_points=(
            "Disarmed by specific, genuine praise of the technology",
            "Neutralised when strategy is framed quantitatively",
        ),
        tactics=(
            "Jargon-based frame control",
            "Interruption as 'context'",
            "Questions that imply incompetence",
            "Reframing sales wins as product wins",
        ),
    ),
    Persona(
        id="consultancy-gatekeeper",
        name="The Consultancy Gatekeeper",
        description="A senior partner who treats vendor partnerships as a concession.",
        communication_style="Polished, unhurried, heavy on status cues.",
        hidden_motivation="Needs an AI story for the practice without risking the brand.",
        pressure_points=(
            "Responds to exclusive, first-mover propositions",
            "Softens when shown an understanding of consultancy economics",
        ),
        tactics=(
            "Status signalling",
            "Conditional enthusiasm",
            "Excessive proof requests",
            "Pace control",
            "Brand-risk framing",
        ),
    ),
)

DOMAIN_PERSONA_MAP: dict[str, tuple[str, ...]] = {
    "Influence & Persuasion": ("sceptical-investor", "consultancy-gatekeeper", "political-stakeholder"),
    "Power Dynamics": ("alpha-peer", "political-stakeholder", "consultancy-gatekeeper"),
    "Negotiation": ("hostile-negotiator", "sceptical-investor", "consultancy-gatekeeper"),
    "Behavioural Psychology & Cognitive Bias": ("sceptical-investor", "hostile-negotiator", "political-stakeholder"),
    "Nonverbal Intelligence & Behavioural Profiling": ("hostile-negotiator", "political-stakeholder", "alpha-peer"),
    "Rapport & Relationship Engineering": ("resistant-report", "consultancy-gatekeeper", "political-stakeholder"),
    "Dark Psychology & Coercive Technique Recognition": ("hostile-negotiator", "alpha-peer", "resistant-report"),
}

_BY_ID = {persona.id: persona for persona in PERSONAS}


def get_persona(persona_id: str) -> Persona | None:
    return _BY_ID.get(persona_id)


def select_persona(concept: Concept, rng: random.Random) -> Persona:
    """Pick a persona suited to the concept's domain; any persona if the domain is unmapped."""
    candidates = [_BY_ID[pid] for pid in DOMAIN_PERSONA_MAP.get(concept.domain, ()) if pid in _BY_ID]
    return rng.choice(candidates or list(PERSONAS))
