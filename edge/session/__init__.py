"""
Session lifecycle: phase types, the phase controller and the status surface.
"""

from edge.session.controller import PhaseController
from edge.session.phases import Phase, PhaseResult, PhaseSnapshot
from edge.session.status import StatusReport, StatusService

__all__ = [
    "Phase",
    "PhaseController",
    "PhaseResult",
    "PhaseSnapshot",
    "StatusReport",
    "StatusService",
]
