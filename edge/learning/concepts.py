"""
Concept catalogue and selection policy.

Concepts are grouped into seven domains. The catalogue only carries seed
data; full lesson content is generated per session.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterable, Sequence

from loguru import logger

from edge.core.models import ReviewScheduleEntry

DOMAINS: tuple[str, ...] = (
    "Influence & Persuasion",
    "Power Dynamics",
    "Negotiation",
    "Behavioural Psychology & Cognitive Bias",
    "Nonverbal Intelligence & Behavioural Profiling",
    "Rapport & Relationship Engineering",
    "Dark Psychology & Coercive Technique Recognition",
)


@dataclass(frozen=True)
class Concept:
    id: str
    name: str
    domain: str
    source: str
    description: str

    @property
    def label(self) -> str:
        """Ledger label, e.g. ``Reciprocity (Cialdini)``."""
        return f"{self.name} ({self.source})"

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "name": self.name,
            "domain": self.domain,
            "source": self.source,
            "description": self.description,
            "label": self.label,
        }


CONCEPTS: tuple[Concept, ...] = (
    # Influence & Persuasion
    Concept(
        id="reciprocity",
        name="Reciprocity",
        domain="Influence & Persuasion",
        source="Cialdini",
        description="Giving first, even something small, creates a felt obligation that makes a later request easier to grant.",
    ),
    Concept(
        id="commitment-consistency",
        name="Commitment & Consistency",
        domain="Influence & Persuasion",
        source="Cialdini",
        description="A small stated position pulls later behaviour into line with it; early micro-commitments shape the final decision.",
    ),
    # Power Dynamics
    Concept(
        id="conceal-intentions",
        name="Law 3: Conceal Your Intentions",
        domain="Power Dynamics",
        source="Greene",
        description="Opaque goals deny the other side the chance to prepare countermeasures.",
    ),
    Concept(
        id="discover-thumbscrew",
        name="Law 33: Discover Each Person's Thumbscrew",
        domain="Power Dynamics",
        source="Greene",
        description="Everyone has an insecurity or need that, once found, moves them more than any argument.",
    ),
    # Negotiation
    Concept(
        id="tactical-empathy",
        name="Tactical Empathy",
        domain="Negotiation",
        source="Voss",
        description="Demonstrating that you understand the other side's feelings lowers their guard without conceding anything.",
    ),
    Concept(
        id="calibrated-questions",
        name="Calibrated Questions",
        domain="Negotiation",
        source="Voss",
        description="Open 'how' and 'what' questions hand the other side the problem and the illusion of control.",
    ),
    # Behavioural Psychology & Cognitive Bias
    Concept(
        id="anchoring",
        name="Anchoring Effect",
        domain="Behavioural Psychology & Cognitive Bias",
        source="Kahneman",
        description="The first number on the table drags every later estimate towards it, even when it is arbitrary.",
    ),
    Concept(
        id="loss-aversion",
        name="Loss Aversion",
        domain="Behavioural Psychology & Cognitive Bias",
        source="Kahneman",
        description="Losses weigh roughly twice as much as equivalent gains, so framing a choice as avoiding loss moves people harder.",
    ),
    # Nonverbal Intelligence & Behavioural Profiling
    Concept(
        id="baseline-reading",
        name="Baseline Behaviour Reading",
        domain="Nonverbal Intelligence & Behavioural Profiling",
        source="Chase Hughes",
        description="Deviations only mean something against a person's relaxed baseline, which must be observed first.",
    ),
    Concept(
        id="deviation-detection",
        name="Deviation Detection",
        domain="Nonverbal Intelligence & Behavioural Profiling",
        source="Chase Hughes",
        description="Clusters of change from baseline, timed to a specific topic, mark where the pressure really is.",
    ),
    # Rapport & Relationship Engineering
    Concept(
        id="genuine-interest",
        name="Genuine Interest Principle",
        domain="Rapport & Relationship Engineering",
        source="Carnegie",
        description="Sustained curiosity about the other person builds more rapport than any amount of self-presentation.",
    ),
    Concept(
        id="talk-their-interests",
        name="Talk in Terms of Their Interests",
        domain="Rapport & Relationship Engineering",
        source="Carnegie",
        description="Proposals land when framed around what the listener already wants, not what the speaker needs.",
    ),
    # Dark Psychology & Coercive Technique Recognition
    Concept(
        id="darvo",
        name="DARVO Pattern",
        domain="Dark Psychology & Coercive Technique Recognition",
        source="Zimbardo",
        description="Deny, attack, reverse victim and offender: a deflection sequence that turns accountability back on the accuser.",
    ),
    Concept(
        id="manufactured-urgency",
        name="Manufactured Urgency",
        domain="Dark Psychology & Coercive Technique Recognition",
        source="Cialdini",
        description="Artificial deadlines compress deliberation so that the target decides before thinking.",
    ),
)

_BY_ID = {concept.id: concept for concept in CONCEPTS}


def get_concept(concept_id: str) -> Concept | None:
    return _BY_ID.get(concept_id)


@dataclass(frozen=True)
class ConceptSelection:
    concept: Concept
    is_review: bool


def select_concept(
    catalogue: Sequence[Concept],
    completed_ids: Iterable[str],
    due_entries: Sequence[ReviewScheduleEntry],
    rng: random.Random,
    review_probability: float = 0.3,
    last_concept_id: str | None = None,
) -> ConceptSelection:
    """
    Choose today's concept.

    Args:
        catalogue: Concepts to choose from
        completed_ids: Concepts already practiced
        due_entries: Due reviews, most overdue first
        rng: Random source (seed it in tests)
        review_probability: Chance of taking the most overdue review
        last_concept_id: Concept practiced most recently, for domain rotation

    Returns:
        ConceptSelection with is_review set when a due review was picked
    """
    if not catalogue:
        raise ValueError("Concept catalogue is empty")

    by_id = {c.id: c for c in catalogue}

    if due_entries and rng.random() < review_probability:
        concept = by_id.get(due_entries[0].concept_id)
        if concept is not None:
            logger.info(f"Selected review concept {concept.id}")
            return ConceptSelection(concept=concept, is_review=True)
        logger.warning(f"Due concept {due_entries[0].concept_id} is not in the catalogue")

    completed = set(completed_ids)
    available = [c for c in catalogue if c.id not in completed]

    if not available:
        logger.info("Every concept completed; resetting the pool")
        return ConceptSelection(concept=rng.choice(list(catalogue)), is_review=False)

    last = by_id.get(last_concept_id) if last_concept_id else None
    if last is not None:
        other_domain = [c for c in available if c.domain != last.domain]
        if other_domain:
            return ConceptSelection(concept=rng.choice(other_domain), is_review=False)

    return ConceptSelection(concept=rng.choice(available), is_review=False)
