"""
FastAPI application for the edge trainer.

Provides REST API for:
- The daily session lifecycle (one endpoint per phase)
- Progress status
- Health

Services are constructed once per application in ``build_services`` and
shared through ``app.state``.
"""

from __future__ import annotations

import random
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from config import Settings, get_settings
from edge.api.dependencies import require_api_key
from edge.core.errors import EdgeError, RateLimitExceeded
from edge.core.logging_config import configure_logging
from edge.core.rate_limit import RateLimiter
from edge.integrations.text_client import GenerativeTextClient, TextGenerator
from edge.learning.spaced_repetition import ReviewConfig, ReviewScheduler
from edge.session.controller import PhaseController
from edge.session.status import StatusService
from edge.storage.ledger import LedgerStore


@dataclass
class Services:
    ledger: LedgerStore
    scheduler: ReviewScheduler
    text_client: TextGenerator
    rate_limiter: RateLimiter
    controller: PhaseController
    status: StatusService


def build_services(
    settings: Settings,
    *,
    text_client: TextGenerator | None = None,
    rate_limiter: RateLimiter | None = None,
    rng: random.Random | None = None,
) -> Services:
    """Wire the storage, scheduler, client, limiter and controller together."""
    ledger = LedgerStore(settings.ledger_path, lock_timeout=settings.storage_lock_timeout_seconds)
    scheduler = ReviewScheduler(
        settings.schedule_path,
        config=ReviewConfig(max_interval_days=settings.max_interval_days),
        lock_timeout=settings.storage_lock_timeout_seconds,
    )
    text_client = text_client or GenerativeTextClient(
        settings.anthropic_api_key,
        backoff_seconds=settings.rate_limit_backoff_seconds,
    )
    rate_limiter = rate_limiter or RateLimiter()
    controller = PhaseController(ledger, scheduler, text_client, rate_limiter, settings, rng=rng)

    return Services(
        ledger=ledger,
        scheduler=scheduler,
        text_client=text_client,
        rate_limiter=rate_limiter,
        controller=controller,
        status=StatusService(ledger, scheduler, recent=settings.digest_size),
    )


def _error_response(exc: EdgeError) -> JSONResponse:
    body: dict[str, Any] = {"error": exc.message, "retryable": exc.retryable}
    snapshot = getattr(exc, "snapshot", None)
    if snapshot is not None:
        body["snapshot"] = snapshot.model_dump(mode="json")

    headers = {}
    if isinstance(exc, RateLimitExceeded):
        headers["Retry-After"] = str(exc.retry_after)
        if exc.limit is not None:
            headers["X-RateLimit-Limit"] = str(exc.limit)
        headers["X-RateLimit-Remaining"] = "0"

    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use (defaults to the cached environment settings)
        services: Pre-built services (tests inject fakes); built at startup otherwise
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown events."""
        configure_logging(settings)
        logger.info("Starting edge trainer service...")
        if getattr(app.state, "services", None) is None:
            app.state.services = build_services(settings)
        if not settings.has_ai_configured():
            logger.warning("ANTHROPIC_API_KEY not set; generative phases will fail over")
        logger.info(f"Data directory: {settings.data_dir}")

        yield

        logger.info("Shutting down edge trainer service...")

    app = FastAPI(
        title="Edge Trainer",
        description="Daily influence-training sessions: check-in, lesson, recall, roleplay, debrief, mission.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services

    @app.exception_handler(EdgeError)
    async def edge_error_handler(request: Request, exc: EdgeError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
        return _error_response(exc)

    # ========================================
    # Health
    # ========================================

    @app.get("/health", tags=["Health"])
    def health_check() -> dict[str, Any]:
        """Liveness plus which collaborators are configured."""
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "components": {
                "ai": "configured" if settings.has_ai_configured() else "not_configured",
                "ledger": str(settings.ledger_path),
                "schedule": str(settings.schedule_path),
            },
        }

    # ========================================
    # Routers
    # ========================================

    from edge.api.routers import session_router, status_router

    protected = [Depends(require_api_key)]
    app.include_router(session_router.router, prefix="/api/session", tags=["Session"], dependencies=protected)
    app.include_router(status_router.router, prefix="/api/status", tags=["Status"], dependencies=protected)

    return app


app = create_app()
