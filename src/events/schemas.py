"""Lifecycle and delivery events emitted by the alert and notification services.

Every event carries the tenant identifiers plus the flattened fields of
the entity it describes. ``to_dict`` renders ids as strings and
timestamps as ISO-8601 so payloads can go straight onto a wire.
"""

import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, ClassVar


@dataclass(kw_only=True)
class Event:
    """Base event with tenant id, event id and timestamp."""

    kind: ClassVar[str] = "event"
    stream: ClassVar[str] = "events"

    org_id: str
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        data: dict[str, Any] = {"kind": self.kind}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, dict):
                value = dict(value)
            data[f.name] = value
        return data


@dataclass(kw_only=True)
class AlertTriggeredEvent(Event):
    kind: ClassVar[str] = "alert.triggered"
    stream: ClassVar[str] = "alerts"

    site_id: str
    alert_id: str
    alert_type: str
    severity: str
    title: str
    message: str
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(kw_only=True)
class NotificationQueuedEvent(Event):
    kind: ClassVar[str] = "notification.queued"
    stream: ClassVar[str] = "notifications"

    notification_id: str
    notification_type: str
    recipient: str
    subject: str
    triggered_by_alert_id: str | None = None


@dataclass(kw_only=True)
class NotificationSentEvent(Event):
    kind: ClassVar[str] = "notification.sent"
    stream: ClassVar[str] = "notifications"

    notification_id: str
    notification_type: str
    recipient: str
    external_message_id: str | None = None


@dataclass(kw_only=True)
class NotificationFailedEvent(Event):
    kind: ClassVar[str] = "notification.failed"
    stream: ClassVar[str] = "notifications"

    notification_id: str
    notification_type: str
    recipient: str
    error_message: str
    error_code: str | None = None


@dataclass(kw_only=True)
class NotificationRetriedEvent(Event):
    kind: ClassVar[str] = "notification.retried"
    stream: ClassVar[str] = "notifications"

    notification_id: str
    notification_type: str
    recipient: str
    retry_count: int
