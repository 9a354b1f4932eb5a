"""
Learning content and review timing.

Components:
- concepts: Concept catalogue and selection policy
- personas: Roleplay counterparts and the domain mapping
- spaced_repetition: SM-2 derived review scheduler
"""

from edge.learning.concepts import CONCEPTS, Concept, ConceptSelection, select_concept
from edge.learning.personas import PERSONAS, Persona, select_persona
from edge.learning.spaced_repetition import ReviewConfig, ReviewScheduler, ScheduleSummary, next_entry

__all__ = [
    "CONCEPTS",
    "Concept",
    "ConceptSelection",
    "select_concept",
    "PERSONAS",
    "Persona",
    "select_persona",
    "ReviewConfig",
    "ReviewScheduler",
    "ScheduleSummary",
    "next_entry",
]
