"""Notification dispatch configuration.

Provider endpoints, credentials and history size. All settings can be
overridden via ``NOTIFICATIONS_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Retry budget per notification; not configurable
MAX_RETRIES = 3


class NotificationConfig(BaseSettings):
    """Configuration for notification dispatch."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATIONS_",
        case_sensitive=False,
        extra="ignore",
    )

    max_notifications: int = Field(
        default=1000,
        ge=1,
        description="History entries kept per organization (oldest trimmed)",
    )
    http_timeout: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Per-request timeout for HTTP and SMTP senders",
    )

    # SMTP
    smtp_host: str = "localhost"
    smtp_port: int = Field(default=587, ge=1, le=65535)
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    smtp_from_address: str = "alerts@localhost"
    smtp_from_name: str = "Alert Engine"

    # SMS / push gateways
    sms_gateway_url: str = "http://localhost:8081/sms"
    sms_api_key: str | None = None
    sms_sender_id: str | None = None
    push_gateway_url: str = "http://localhost:8082/push"
    push_api_key: str | None = None
