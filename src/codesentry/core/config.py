"""Configuration management for the scanning engine.

Loads settings from environment variables using a Pydantic model. Every
setting has a sensible default; override via environment.

Provides:
- Config: Pydantic model with all engine settings
- load_config: Factory function to create Config instance
"""

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from codesentry.core.ignore import default_ignore_file

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config(BaseModel):
    """Engine configuration loaded from the environment.

    Attributes:
        max_workers: Worker threads for per-file scanning (1 = sequential)
        excerpt_max_chars: Maximum length of a finding excerpt
        ignore_file: YAML file with ignore rules
        log_level: structlog level name
        log_json: Render logs as JSON instead of console output
    """

    max_workers: int = Field(
        default_factory=lambda: int(os.getenv("CODESENTRY_MAX_WORKERS", "1")),
        ge=1,
    )
    excerpt_max_chars: int = Field(
        default_factory=lambda: int(os.getenv("CODESENTRY_EXCERPT_MAX_CHARS", "160")),
        ge=16,
    )
    ignore_file: Path = Field(
        default_factory=lambda: Path(os.getenv("CODESENTRY_IGNORE_FILE", "") or default_ignore_file())
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("CODESENTRY_LOG_LEVEL", "info"),
        validate_default=True,
    )
    log_json: bool = Field(default_factory=lambda: _env_bool("CODESENTRY_LOG_JSON", False))

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().lower()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level


def load_config() -> Config:
    """Load configuration from the environment.

    Returns:
        Populated Config instance
    """
    return Config()
