"""Application settings using Pydantic Settings for environment-based configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the alert engine.

    All settings can be overridden via environment variables.
    Prefix is not used to allow standard env var names (e.g., REDIS_URL).
    Alert and notification tuning live in their own settings classes
    (``ALERTS_*`` and ``NOTIFICATIONS_*``).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Redis (tenant state + event fan-out)
    redis_url: RedisDsn = Field(default="redis://localhost:6379/0")
    state_key_prefix: str = "state"
    event_channel_prefix: str = "events"

    # Backends: "memory" keeps everything in-process (tests, CLI dry runs)
    state_backend: Literal["memory", "redis"] = "memory"
    event_backend: Literal["memory", "redis", "log"] = "log"

    # Observability
    metrics_port: int = 8000
    service_name: str = "alert-engine"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def uses_redis(self) -> bool:
        """Check if any backend needs a Redis connection."""
        return self.state_backend == "redis" or self.event_backend == "redis"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    Clear cache with get_settings.cache_clear() if needed.
    """
    return Settings()
