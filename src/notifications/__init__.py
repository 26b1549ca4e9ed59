"""Notification dispatch: channels, senders, history and retry per organization.

Components:
- NotificationChannelConfig / NotificationRecord: Dataclasses for channels and history
- NotificationType / NotificationStatus: Enums
- ChannelSender: ABC with SMTP, SMS gateway, push gateway and Slack webhook senders
- NotificationConfig: Pydantic settings for providers and history size
- NotificationService: Per-organization orchestrator for sends, fan-out and retry
"""

from src.notifications.config import MAX_RETRIES, NotificationConfig
from src.notifications.schemas import (
    CHANNEL_TYPES,
    NotificationChannelConfig,
    NotificationRecord,
    NotificationStatus,
    NotificationType,
    SendEmailCommand,
    SendPushCommand,
    SendResult,
    SendSlackCommand,
    SendSmsCommand,
)
from src.notifications.senders import (
    ChannelSender,
    HttpPushSender,
    HttpSmsSender,
    SlackWebhookSender,
    SmtpEmailSender,
    build_senders,
)
from src.notifications.service import NotificationService

__all__ = [
    "CHANNEL_TYPES",
    "ChannelSender",
    "HttpPushSender",
    "HttpSmsSender",
    "MAX_RETRIES",
    "NotificationChannelConfig",
    "NotificationConfig",
    "NotificationRecord",
    "NotificationService",
    "NotificationStatus",
    "NotificationType",
    "SendEmailCommand",
    "SendPushCommand",
    "SendResult",
    "SendSlackCommand",
    "SendSmsCommand",
    "SlackWebhookSender",
    "SmtpEmailSender",
    "build_senders",
]
