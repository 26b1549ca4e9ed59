"""Schema definitions for notification channels, records and send commands.

Each organization keeps a list of ``NotificationChannelConfig`` entries and
a bounded, most-recent-first history of ``NotificationRecord`` entries.
A delivery failure is recorded on the record, never raised.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from src.alerts.schemas import AlertSeverity, AlertType
from src.core.timeutil import from_iso, to_iso, utcnow


class NotificationType(str, Enum):
    """Delivery path a record went through."""

    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    SLACK = "slack"


class NotificationStatus(str, Enum):
    QUEUED = "Queued"
    SENT = "Sent"
    FAILED = "Failed"
    RETRYING = "Retrying"


# Channel config types; slack and webhook both post to a webhook URL
CHANNEL_TYPES: frozenset[str] = frozenset({"email", "sms", "push", "slack", "webhook"})


@dataclass
class SendResult:
    """What a channel sender reports back.

    Attributes:
        success: Whether the provider accepted the message.
        message_id: Provider-side id, when one is returned.
        error_message: Human-readable failure reason.
        error_code: Provider or transport error code.
    """

    success: bool
    message_id: str | None = None
    error_message: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(cls, message_id: str | None = None) -> "SendResult":
        return cls(success=True, message_id=message_id)

    @classmethod
    def failed(cls, error_message: str, error_code: str | None = None) -> "SendResult":
        return cls(success=False, error_message=error_message, error_code=error_code)


@dataclass
class NotificationChannelConfig:
    """Where and when an organization wants alert notifications.

    Attributes:
        type: email, sms, push, slack or webhook (matched case-insensitively).
        target: Email address, phone number, device token or webhook URL.
        alert_types: Allow-list of alert types; None or empty means all.
        minimum_severity: Alerts strictly below this are not sent.
        configuration: Free-form channel options (e.g. slack ``channel``).
    """

    type: str
    target: str
    enabled: bool = True
    channel_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    alert_types: list[AlertType] | None = None
    minimum_severity: AlertSeverity | None = None
    configuration: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.alert_types is not None:
            self.alert_types = [AlertType(t) for t in self.alert_types]
        if self.minimum_severity is not None:
            self.minimum_severity = AlertSeverity(self.minimum_severity)

    @property
    def normalized_type(self) -> str:
        return self.type.strip().lower()

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "channel_id": self.channel_id,
            "type": self.type,
            "target": self.target,
            "enabled": self.enabled,
            "alert_types": (
                [t.value for t in self.alert_types]
                if self.alert_types is not None else None
            ),
            "minimum_severity": (
                self.minimum_severity.value if self.minimum_severity else None
            ),
            "configuration": dict(self.configuration),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NotificationChannelConfig":
        return cls(
            channel_id=data.get("channel_id") or str(uuid.uuid4()),
            type=data["type"],
            target=data["target"],
            enabled=data.get("enabled", True),
            alert_types=data.get("alert_types"),
            minimum_severity=data.get("minimum_severity"),
            configuration=dict(data.get("configuration") or {}),
        )


@dataclass
class NotificationRecord:
    """One delivery attempt chain for one recipient.

    Attributes:
        notification_id: UUID4 identifier.
        status: Queued → Sent/Failed; Failed → Retrying → Sent/Failed.
        retry_count: Retries used so far (never above MAX_RETRIES).
        triggered_by_alert_id: Alert that caused this notification, if any.
    """

    type: NotificationType
    recipient: str
    subject: str
    body: str
    notification_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: NotificationStatus = NotificationStatus.QUEUED
    created_at: datetime = field(default_factory=utcnow)
    sent_at: datetime | None = None
    retry_count: int = 0
    error_message: str | None = None
    error_code: str | None = None
    external_message_id: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    triggered_by_alert_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "notification_id": self.notification_id,
            "type": self.type.value,
            "recipient": self.recipient,
            "subject": self.subject,
            "body": self.body,
            "status": self.status.value,
            "created_at": to_iso(self.created_at),
            "sent_at": to_iso(self.sent_at),
            "retry_count": self.retry_count,
            "error_message": self.error_message,
            "error_code": self.error_code,
            "external_message_id": self.external_message_id,
            "metadata": dict(self.metadata),
            "triggered_by_alert_id": self.triggered_by_alert_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NotificationRecord":
        return cls(
            notification_id=data["notification_id"],
            type=NotificationType(data["type"]),
            recipient=data["recipient"],
            subject=data.get("subject", ""),
            body=data.get("body", ""),
            status=NotificationStatus(data.get("status", "Queued")),
            created_at=from_iso(data["created_at"]),
            sent_at=from_iso(data.get("sent_at")),
            retry_count=data.get("retry_count", 0),
            error_message=data.get("error_message"),
            error_code=data.get("error_code"),
            external_message_id=data.get("external_message_id"),
            metadata=dict(data.get("metadata") or {}),
            triggered_by_alert_id=data.get("triggered_by_alert_id"),
        )


# ── Commands ─────────────────────────────────────────────


@dataclass
class SendEmailCommand:
    to: str
    subject: str
    body: str
    is_html: bool = True
    triggered_by_alert_id: str | None = None
    metadata: dict[str, str] | None = None


@dataclass
class SendSmsCommand:
    to: str
    message: str
    triggered_by_alert_id: str | None = None
    metadata: dict[str, str] | None = None


@dataclass
class SendPushCommand:
    device_token: str
    title: str
    body: str
    data: dict[str, str] | None = None
    triggered_by_alert_id: str | None = None
    metadata: dict[str, str] | None = None


@dataclass
class SendSlackCommand:
    webhook_url: str
    message: str
    channel: str | None = None
    username: str | None = None
    icon_emoji: str | None = None
    triggered_by_alert_id: str | None = None
    metadata: dict[str, str] | None = None
