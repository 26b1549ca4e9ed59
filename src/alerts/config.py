"""Alert service configuration.

Controls rule evaluation and lifecycle defaults. All settings can be
overridden via ``ALERTS_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AlertConfig(BaseSettings):
    """Configuration for the alert engine."""

    model_config = SettingsConfigDict(
        env_prefix="ALERTS_",
        case_sensitive=False,
        extra="ignore",
    )

    # Kill switch for scheduled evaluation; manual create_alert still works
    evaluation_enabled: bool = Field(
        default=True,
        description="Evaluate rules when snapshots arrive",
    )

    seed_default_rules: bool = Field(
        default=True,
        description="Seed the default rule catalog when a site is initialized",
    )

    default_snooze_minutes: int = Field(
        default=60,
        ge=1,
        le=60 * 24 * 30,
        description="Snooze duration used when a caller does not pass one",
    )
