"""Persisted state of one organization's notification component."""

from dataclasses import dataclass, field
from typing import Any

from src.notifications.schemas import NotificationChannelConfig, NotificationRecord


@dataclass
class NotificationState:
    """Channel configs plus the bounded, newest-first notification history."""

    org_id: str | None = None
    channels: list[NotificationChannelConfig] = field(default_factory=list)
    notifications: list[NotificationRecord] = field(default_factory=list)
    version: int = 0

    @property
    def initialized(self) -> bool:
        return self.org_id is not None

    def find_channel(self, channel_id: str) -> NotificationChannelConfig | None:
        return next((c for c in self.channels if c.channel_id == channel_id), None)

    def find_notification(self, notification_id: str) -> NotificationRecord | None:
        return next(
            (n for n in self.notifications if n.notification_id == notification_id),
            None,
        )

    def prepend(self, record: NotificationRecord, max_notifications: int) -> int:
        """Insert at the head and trim the tail. Returns how many were dropped."""
        self.notifications.insert(0, record)
        dropped = max(0, len(self.notifications) - max_notifications)
        if dropped:
            del self.notifications[max_notifications:]
        return dropped

    def to_dict(self) -> dict[str, Any]:
        return {
            "org_id": self.org_id,
            "channels": [c.to_dict() for c in self.channels],
            "notifications": [n.to_dict() for n in self.notifications],
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NotificationState":
        return cls(
            org_id=data.get("org_id"),
            channels=[NotificationChannelConfig.from_dict(c) for c in data.get("channels", [])],
            notifications=[
                NotificationRecord.from_dict(n) for n in data.get("notifications", [])
            ],
            version=data.get("version", 0),
        )
