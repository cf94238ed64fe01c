"""
Client configuration.

All settings can be overridden through ``SAJILO_``-prefixed environment
variables or a ``.env`` file.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sajilo_client.duration import parse_max_age

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Settings(BaseSettings):
    """Client settings with validation."""

    model_config = SettingsConfigDict(
        env_prefix="SAJILO_",
        env_file=".env",
        extra="ignore",
    )

    # === API ===
    base_url: str = Field(
        default="http://localhost:8000",
        description="Root URL of the hiring-platform API",
    )
    api_prefix: str = Field(
        default="/sajilo",
        description="Path prefix for every endpoint except /health",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Transport timeout per request",
    )

    # === Cache ===
    gc_time_ms: int = Field(
        default=0,
        ge=0,
        description="How long an unobserved entry is kept before collection",
    )
    staleness: dict[str, int | None] = Field(
        default_factory=dict,
        description='Per-kind max age overrides, e.g. {"jobs": "1m", "health": null}',
    )

    # === Chat ===
    chat_settle_delay_ms: int = Field(
        default=1000,
        ge=0,
        description="Delay before starting a chat whose history is empty",
    )

    # === Logging ===
    log_level: str = Field(default="INFO", description="structlog level")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("api_prefix")
    @classmethod
    def validate_api_prefix(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if v and not v.startswith("/"):
            v = f"/{v}"
        return v

    @field_validator("staleness", mode="before")
    @classmethod
    def parse_staleness(
        cls, v: dict[str, int | str | None] | None
    ) -> dict[str, int | None]:
        if v is None:
            return {}
        return {kind: parse_max_age(max_age) for kind, max_age in v.items()}

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}")
        return level


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance, read from the environment once."""
    return Settings()


__all__ = ["Settings", "get_settings"]
