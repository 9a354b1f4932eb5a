"""
Configuration settings for the edge-trainer service.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory holding the ledger and review schedule files",
    )
    ledger_filename: str = Field(
        default="ledger.json",
        description="File name of the session ledger inside data_dir",
    )
    schedule_filename: str = Field(
        default="review-schedule.json",
        description="File name of the review schedule inside data_dir",
    )
    storage_lock_timeout_seconds: float = Field(
        default=10.0,
        description="Maximum wait for the collection writer lock",
    )

    # ========================================
    # Generative Text Service (Anthropic)
    # ========================================
    anthropic_api_key: str | None = Field(
        default=None,
        description="Anthropic API key; without it every generative call fails over",
    )
    primary_model: str = Field(
        default="claude-sonnet-4-5-20250929",
        description="Model for lesson, roleplay, debrief, mission and check-in",
    )
    fast_model: str = Field(
        default="claude-haiku-4-5-20251001",
        description="Model for the side-channel coach",
    )
    interactive_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for short interactive calls (check-in, retrieval, coach)",
    )
    roleplay_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for a roleplay turn",
    )
    content_timeout_seconds: float = Field(
        default=90.0,
        description="Timeout for content-heavy calls (lesson, debrief, mission)",
    )
    rate_limit_backoff_seconds: float = Field(
        default=2.0,
        description="Fixed wait before the single retry on an upstream 429",
    )

    # ========================================
    # Session Lifecycle
    # ========================================
    snapshot_max_age_hours: int = Field(
        default=24,
        description="Snapshots older than this are stale and the session restarts",
    )
    fallback_after_failures: int = Field(
        default=2,
        description="Consecutive debrief/mission failures before the fallback is used",
    )
    retrieval_max_attempts: int = Field(
        default=2,
        description="Recall attempts before a manual override is permitted",
    )
    roleplay_soft_turn_limit: int = Field(
        default=8,
        description="Advisory number of user turns before suggesting /finish",
    )
    digest_size: int = Field(
        default=7,
        description="Number of recent ledger entries in the prompt digest",
    )

    # ========================================
    # Spaced Repetition
    # ========================================
    review_probability: float = Field(
        default=0.3,
        description="Chance of picking a due review when the due-set is non-empty",
    )
    max_interval_days: int = Field(
        default=365,
        description="Upper bound on a review interval",
    )

    # ========================================
    # Rate Limiting (requests per window, per client and endpoint)
    # ========================================
    rate_limit_window_seconds: float = Field(default=60.0)
    rate_limit_start: int = Field(default=10)
    rate_limit_checkin: int = Field(default=5)
    rate_limit_lesson: int = Field(default=5)
    rate_limit_retrieval: int = Field(default=10)
    rate_limit_roleplay: int = Field(default=30)
    rate_limit_coach: int = Field(default=10)
    rate_limit_debrief: int = Field(default=5)
    rate_limit_mission: int = Field(default=5)
    rate_limit_status: int = Field(default=60)

    # ========================================
    # API Settings
    # ========================================
    edge_api_key: str | None = Field(
        default=None,
        description="Optional shared key; when unset every request passes",
    )
    api_host: str = Field(
        default="127.0.0.1",
        description="API server host",
    )
    api_port: int = Field(
        default=8100,
        description="API server port",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path",
    )

    @property
    def ledger_path(self) -> Path:
        return self.data_dir / self.ledger_filename

    @property
    def schedule_path(self) -> Path:
        return self.data_dir / self.schedule_filename

    def has_ai_configured(self) -> bool:
        """Check if the generative text service is configured."""
        return bool(self.anthropic_api_key)

    def get_rate_limits(self) -> dict[str, int]:
        """Per-endpoint request limits, keyed by endpoint name."""
        return {
            "start": self.rate_limit_start,
            "checkin": self.rate_limit_checkin,
            "lesson": self.rate_limit_lesson,
            "retrieval": self.rate_limit_retrieval,
            "roleplay": self.rate_limit_roleplay,
            "coach": self.rate_limit_coach,
            "debrief": self.rate_limit_debrief,
            "mission": self.rate_limit_mission,
            "status": self.rate_limit_status,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
