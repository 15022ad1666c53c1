"""
Configuration settings for flashdeck.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

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
        default=Path.home() / ".flashdeck",
        description="Directory holding one SQLite database per dataset",
    )
    dataset: str = Field(
        default="default",
        description="Card dataset (per-user deck) to study",
    )

    # ========================================
    # Study Session
    # ========================================
    new_card_limit: int = Field(
        default=20,
        ge=0,
        description="Maximum new cards introduced per session",
    )
    scheduler_mode: Literal["anki", "sm2"] = Field(
        default="anki",
        description="Scheduling algorithm: learning-step state machine or legacy SM-2",
    )
    lapse_policy: Literal["requeue", "lapse_pile"] = Field(
        default="requeue",
        description="Failed cards: back of the queue, or a pile replayed at the end",
    )

    # ========================================
    # Scheduler
    # ========================================
    learning_steps: int = Field(
        default=2,
        ge=1,
        description="Same-session repeats before a new card graduates",
    )
    relearning_steps: int = Field(
        default=1,
        ge=1,
        description="Same-session repeats after a lapse",
    )
    minimum_factor: float = Field(
        default=1.3,
        ge=1.3,
        description="Floor for the ease factor (1.3 or higher)",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    def get_scheduler_config(self) -> dict[str, Any]:
        """Get scheduler keyword arguments as a dictionary."""
        return {
            "learning_steps": self.learning_steps,
            "relearning_steps": self.relearning_steps,
            "minimum_factor": self.minimum_factor,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
