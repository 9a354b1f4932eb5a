"""
Edge Trainer: a guided daily influence-training session.

Each day runs check-in, lesson, recall check, roleplay, debrief and mission,
then records the session in the ledger and reschedules the concept for
review.

Packages:
- core: errors, shared models, response extractor, rate limiter
- storage: atomic JSON collections and the session ledger
- learning: concept catalogue, personas, spaced-repetition scheduler
- prompts: prompt builders per phase
- integrations: generative text client
- session: phase controller and status surface
- api: FastAPI application
- cli: Typer command-line tool
"""

__version__ = "0.1.0"
