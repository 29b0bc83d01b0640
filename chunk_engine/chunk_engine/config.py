"""Engine configuration loaded from environment variables."""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class EngineSettings(BaseSettings):
    """Engine settings loaded from environment variables with CHUNK_ENGINE_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="CHUNK_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Walker
    max_nesting_depth: int = 64

    # Logging
    log_level: str = "WARNING"
    structured_logging: bool = False

    # Telemetry
    profiling_enabled: bool = True

    @field_validator("max_nesting_depth")
    @classmethod
    def _depth_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_nesting_depth must be >= 1")
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        return level


def load_settings(**overrides: object) -> EngineSettings:
    """Create settings from the environment, optionally overriding values."""
    settings = EngineSettings(**overrides)  # type: ignore[arg-type]
    logger.debug(
        "Loaded engine settings: max_nesting_depth=%d log_level=%s structured=%s",
        settings.max_nesting_depth,
        settings.log_level,
        settings.structured_logging,
    )
    return settings


@lru_cache(maxsize=1)
def get_settings() -> EngineSettings:
    """Process-wide settings, read from the environment once."""
    return load_settings()
