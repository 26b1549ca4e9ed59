"""Notification service: per-organization channels, delivery history and retry.

Every send goes through the same path: a Queued record is prepended to
the history and saved, ``notification.queued`` is published, the
channel sender is called, and the outcome (Sent or Failed) is written
back, saved and published. Delivery failure is data on the record; it is
never raised to the caller.

Alert fan-out walks a list of channel configs, skips channels filtered
out by enablement, minimum severity or alert-type allow-list, and
isolates each channel: an exception from one channel is logged and the
remaining channels are still attempted.

Delivery is best-effort. A failed record can be retried up to
``MAX_RETRIES`` times; nothing retries automatically.
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Any

from src.alerts.schemas import Alert
from src.core.errors import (
    InvalidStateTransitionError,
    NotFoundError,
    NotInitializedError,
    RetryBudgetExceededError,
)
from src.core.tenancy import TenantExecutor, notification_key
from src.core.timeutil import Clock, utcnow
from src.events.publisher import EventPublisher
from src.events.schemas import (
    Event,
    NotificationFailedEvent,
    NotificationQueuedEvent,
    NotificationRetriedEvent,
    NotificationSentEvent,
)
from src.notifications import formatting
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
from src.notifications.senders import ChannelSender
from src.notifications.state import NotificationState
from src.observability.logging import tenant_context
from src.observability.metrics import MetricsCollector, get_metrics
from src.storage.state_store import StateStore

logger = logging.getLogger(__name__)

# Slack records keep the target channel in ``subject``; this means "webhook default"
DEFAULT_SLACK_SUBJECT = "default"


def _copy(record: NotificationRecord) -> NotificationRecord:
    return replace(record, metadata=dict(record.metadata))


def _copy_channel(channel: NotificationChannelConfig) -> NotificationChannelConfig:
    return replace(
        channel,
        alert_types=list(channel.alert_types) if channel.alert_types is not None else None,
        configuration=dict(channel.configuration),
    )


class NotificationService:
    """Orchestrates channel configs, senders and notification history.

    Every public method is keyed by ``org_id`` and, apart from
    ``initialize``, raises ``NotInitializedError`` for an organization that
    has not been initialized.
    """

    def __init__(
        self,
        store: StateStore,
        publisher: EventPublisher,
        senders: dict[NotificationType, ChannelSender],
        config: NotificationConfig | None = None,
        executor: TenantExecutor | None = None,
        clock: Clock = utcnow,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._store = store
        self._publisher = publisher
        self._senders = senders
        self._config = config or NotificationConfig()
        self._executor = executor or TenantExecutor()
        self._clock = clock
        self._metrics = metrics or get_metrics()
        self._states: dict[str, NotificationState] = {}

    # ── State plumbing ───────────────────────────────────

    @asynccontextmanager
    async def _exclusive(self, key: str, org_id: str) -> AsyncIterator[None]:
        async with self._executor.exclusive(key):
            with tenant_context(org_id):
                yield

    async def _load(self, key: str) -> NotificationState:
        state = self._states.get(key)
        if state is None:
            data = await self._store.load(key)
            state = NotificationState.from_dict(data) if data else NotificationState()
            self._states[key] = state
        return state

    async def _load_initialized(self, key: str) -> NotificationState:
        state = await self._load(key)
        if not state.initialized:
            raise NotInitializedError("Notification component", key)
        return state

    async def _save(self, key: str, state: NotificationState) -> None:
        try:
            await self._store.save(key, state.to_dict())
        except Exception:
            # A failed write drops the cached copy; the next call reloads from the store
            self._states.pop(key, None)
            logger.error("Failed to save notification state for %s", key)
            raise

    async def _publish(self, event: Event) -> None:
        try:
            await self._publisher.publish(event)
        except Exception as e:
            logger.error("Failed to publish %s: %s", event.kind, e)

    async def initialize(self, org_id: str) -> None:
        """Create the organization's state. No-op if it already exists."""
        key = notification_key(org_id)
        async with self._exclusive(key, org_id):
            state = await self._load(key)
            if state.initialized:
                return
            state.org_id = org_id
            state.version = 1
            await self._save(key, state)
            logger.info("Notification component initialized")

    # ── Single sends ─────────────────────────────────────

    async def send_email(self, org_id: str, command: SendEmailCommand) -> NotificationRecord:
        key = notification_key(org_id)
        async with self._exclusive(key, org_id):
            state = await self._load_initialized(key)
            return await self._send_email_locked(key, state, command)

    async def send_sms(self, org_id: str, command: SendSmsCommand) -> NotificationRecord:
        key = notification_key(org_id)
        async with self._exclusive(key, org_id):
            state = await self._load_initialized(key)
            return await self._send_sms_locked(key, state, command)

    async def send_push(self, org_id: str, command: SendPushCommand) -> NotificationRecord:
        key = notification_key(org_id)
        async with self._exclusive(key, org_id):
            state = await self._load_initialized(key)
            return await self._send_push_locked(key, state, command)

    async def send_slack(self, org_id: str, command: SendSlackCommand) -> NotificationRecord:
        key = notification_key(org_id)
        async with self._exclusive(key, org_id):
            state = await self._load_initialized(key)
            return await self._send_slack_locked(key, state, command)

    async def _send_email_locked(
        self, key: str, state: NotificationState, command: SendEmailCommand,
    ) -> NotificationRecord:
        return await self._dispatch(
            key, state, NotificationType.EMAIL,
            recipient=command.to,
            subject=command.subject,
            body=command.body,
            triggered_by_alert_id=command.triggered_by_alert_id,
            metadata=command.metadata,
            options={"is_html": command.is_html},
        )

    async def _send_sms_locked(
        self, key: str, state: NotificationState, command: SendSmsCommand,
    ) -> NotificationRecord:
        return await self._dispatch(
            key, state, NotificationType.SMS,
            recipient=command.to,
            subject="SMS",
            body=command.message,
            triggered_by_alert_id=command.triggered_by_alert_id,
            metadata=command.metadata,
        )

    async def _send_push_locked(
        self, key: str, state: NotificationState, command: SendPushCommand,
    ) -> NotificationRecord:
        return await self._dispatch(
            key, state, NotificationType.PUSH,
            recipient=command.device_token,
            subject=command.title,
            body=command.body,
            triggered_by_alert_id=command.triggered_by_alert_id,
            metadata=command.metadata,
            options={"data": command.data or {}},
        )

    async def _send_slack_locked(
        self, key: str, state: NotificationState, command: SendSlackCommand,
    ) -> NotificationRecord:
        return await self._dispatch(
            key, state, NotificationType.SLACK,
            recipient=command.webhook_url,
            subject=command.channel or DEFAULT_SLACK_SUBJECT,
            body=command.message,
            triggered_by_alert_id=command.triggered_by_alert_id,
            metadata=command.metadata,
            options={
                "channel": command.channel,
                "username": command.username,
                "icon_emoji": command.icon_emoji,
            },
        )

    async def _dispatch(
        self,
        key: str,
        state: NotificationState,
        notification_type: NotificationType,
        *,
        recipient: str,
        subject: str,
        body: str,
        triggered_by_alert_id: str | None,
        metadata: dict[str, str] | None,
        options: dict[str, Any] | None = None,
    ) -> NotificationRecord:
        """Queue, send and record the outcome of one notification."""
        record = NotificationRecord(
            type=notification_type,
            recipient=recipient,
            subject=subject,
            body=body,
            status=NotificationStatus.QUEUED,
            created_at=self._clock(),
            triggered_by_alert_id=triggered_by_alert_id,
            metadata=dict(metadata or {}),
        )
        dropped = state.prepend(record, self._config.max_notifications)
        if dropped:
            logger.debug("Trimmed %d old notifications from history", dropped)
        state.version += 1
        await self._save(key, state)

        await self._publish(NotificationQueuedEvent(
            org_id=state.org_id,
            notification_id=record.notification_id,
            notification_type=record.type.value,
            recipient=record.recipient,
            subject=record.subject,
            triggered_by_alert_id=record.triggered_by_alert_id,
            occurred_at=record.created_at,
        ))

        result = await self._invoke_sender(record, options or {})
        await self._apply_result(key, state, record, result)
        return _copy(record)

    async def _invoke_sender(
        self,
        record: NotificationRecord,
        options: dict[str, Any],
    ) -> SendResult:
        """Call the sender for the record's type.

        A sender that raises is reported as a failed result so the record
        still reaches a final status.
        """
        sender = self._senders.get(record.type)
        if sender is None:
            return SendResult.failed(
                f"No sender configured for {record.type.value}", "no_sender",
            )

        start = time.perf_counter()
        try:
            result = await sender.send(record.recipient, record.subject, record.body, **options)
        except Exception as e:
            logger.exception(
                "Sender %s raised for notification %s", sender.name, record.notification_id,
            )
            result = SendResult.failed(str(e) or type(e).__name__, "exception")
        latency = time.perf_counter() - start

        self._metrics.record_notification(
            record.type.value, "sent" if result.success else "failed", latency,
        )
        return result

    async def _apply_result(
        self,
        key: str,
        state: NotificationState,
        record: NotificationRecord,
        result: SendResult,
    ) -> None:
        now = self._clock()
        event: Event
        if result.success:
            record.status = NotificationStatus.SENT
            record.sent_at = now
            record.external_message_id = result.message_id
            record.error_message = None
            record.error_code = None
            logger.info(
                "Notification %s sent. MessageId: %s",
                record.notification_id, result.message_id,
            )
            event = NotificationSentEvent(
                org_id=state.org_id,
                notification_id=record.notification_id,
                notification_type=record.type.value,
                recipient=record.recipient,
                external_message_id=record.external_message_id,
                occurred_at=now,
            )
        else:
            record.status = NotificationStatus.FAILED
            record.error_message = result.error_message or "Unknown error"
            record.error_code = result.error_code
            logger.warning(
                "Notification %s failed. Error: %s",
                record.notification_id, record.error_message,
            )
            event = NotificationFailedEvent(
                org_id=state.org_id,
                notification_id=record.notification_id,
                notification_type=record.type.value,
                recipient=record.recipient,
                error_message=record.error_message,
                error_code=record.error_code,
                occurred_at=now,
            )

        state.version += 1
        await self._save(key, state)
        await self._publish(event)

    # ── Alert fan-out ────────────────────────────────────

    async def send_for_alert(
        self,
        org_id: str,
        alert: Alert,
        channels: list[NotificationChannelConfig] | None = None,
    ) -> list[NotificationRecord]:
        """Fan an alert out to every matching channel.

        Channels run sequentially. Disabled channels, channels whose
        minimum severity is above the alert's, and channels whose
        allow-list excludes the alert type are skipped.

        Args:
            org_id: Organization id.
            alert: Alert to notify about.
            channels: Channel configs to consider; the organization's
                stored channels when None.

        Returns:
            Records created, one per attempted channel that did not raise.
        """
        key = notification_key(org_id)
        async with self._exclusive(key, org_id):
            state = await self._load_initialized(key)
            targets = list(state.channels) if channels is None else channels
            records: list[NotificationRecord] = []

            for channel in targets:
                skip_reason = self._skip_reason(channel, alert)
                if skip_reason is not None:
                    logger.debug(
                        "Channel %s skipped for alert %s: %s",
                        channel.channel_id, alert.alert_id, skip_reason,
                    )
                    continue

                try:
                    record = await self._send_to_channel(key, state, channel, alert)
                except Exception:
                    self._metrics.record_fanout_error(channel.normalized_type)
                    logger.exception(
                        "Failed to send notification to channel %s:%s for alert %s",
                        channel.type, channel.target, alert.alert_id,
                    )
                    state = await self._load_initialized(key)
                    continue
                if record is not None:
                    records.append(record)

            logger.info(
                "Alert %s fanned out to %d of %d channels",
                alert.alert_id, len(records), len(targets),
            )
            return records

    @staticmethod
    def _skip_reason(channel: NotificationChannelConfig, alert: Alert) -> str | None:
        if not channel.enabled:
            return "disabled"
        if channel.minimum_severity is not None and alert.severity < channel.minimum_severity:
            return f"severity {alert.severity.value} below {channel.minimum_severity.value}"
        if channel.alert_types and alert.type not in channel.alert_types:
            return f"type {alert.type.value} not in allow-list"
        return None

    async def _send_to_channel(
        self,
        key: str,
        state: NotificationState,
        channel: NotificationChannelConfig,
        alert: Alert,
    ) -> NotificationRecord | None:
        channel_type = channel.normalized_type
        if channel_type == "email":
            return await self._send_email_locked(key, state, SendEmailCommand(
                to=channel.target,
                subject=formatting.email_subject(alert),
                body=formatting.email_body(alert),
                triggered_by_alert_id=alert.alert_id,
            ))
        if channel_type == "sms":
            return await self._send_sms_locked(key, state, SendSmsCommand(
                to=channel.target,
                message=formatting.sms_text(alert),
                triggered_by_alert_id=alert.alert_id,
            ))
        if channel_type == "push":
            return await self._send_push_locked(key, state, SendPushCommand(
                device_token=channel.target,
                title=formatting.push_title(alert),
                body=alert.message,
                triggered_by_alert_id=alert.alert_id,
            ))
        if channel_type in ("slack", "webhook"):
            return await self._send_slack_locked(key, state, SendSlackCommand(
                webhook_url=channel.target,
                message=formatting.slack_text(alert),
                channel=channel.configuration.get("channel"),
                username=channel.configuration.get("username"),
                icon_emoji=channel.configuration.get("icon_emoji"),
                triggered_by_alert_id=alert.alert_id,
            ))

        logger.warning("Unknown channel type %r on channel %s", channel.type, channel.channel_id)
        return None

    # ── Channel configuration ────────────────────────────

    @staticmethod
    def _validate_type(channel: NotificationChannelConfig) -> None:
        if channel.normalized_type not in CHANNEL_TYPES:
            raise ValueError(
                f"Invalid channel type {channel.type!r}. "
                f"Must be one of: {sorted(CHANNEL_TYPES)}"
            )

    async def get_channels(self, org_id: str) -> list[NotificationChannelConfig]:
        key = notification_key(org_id)
        async with self._exclusive(key, org_id):
            state = await self._load_initialized(key)
            return [_copy_channel(c) for c in state.channels]

    async def add_channel(
        self, org_id: str, channel: NotificationChannelConfig,
    ) -> NotificationChannelConfig:
        """Add a channel. Raises ValueError on an unknown type or a duplicate id."""
        self._validate_type(channel)
        key = notification_key(org_id)
        async with self._exclusive(key, org_id):
            state = await self._load_initialized(key)
            if state.find_channel(channel.channel_id) is not None:
                raise ValueError(f"Channel already exists: {channel.channel_id}")

            stored = _copy_channel(channel)
            state.channels.append(stored)
            state.version += 1
            await self._save(key, state)
            logger.info("Channel %s added (%s)", stored.channel_id, stored.type)
            return _copy_channel(stored)

    async def update_channel(
        self, org_id: str, channel: NotificationChannelConfig,
    ) -> NotificationChannelConfig:
        self._validate_type(channel)
        key = notification_key(org_id)
        async with self._exclusive(key, org_id):
            state = await self._load_initialized(key)
            for i, existing in enumerate(state.channels):
                if existing.channel_id == channel.channel_id:
                    state.channels[i] = _copy_channel(channel)
                    break
            else:
                raise NotFoundError("Channel", channel.channel_id)

            state.version += 1
            await self._save(key, state)
            return _copy_channel(channel)

    async def remove_channel(self, org_id: str, channel_id: str) -> bool:
        """Remove a channel. Returns False (and changes nothing) if it is unknown."""
        key = notification_key(org_id)
        async with self._exclusive(key, org_id):
            state = await self._load_initialized(key)
            channel = state.find_channel(channel_id)
            if channel is None:
                return False
            state.channels.remove(channel)
            state.version += 1
            await self._save(key, state)
            logger.info("Channel %s removed", channel_id)
            return True

    async def set_channel_enabled(
        self, org_id: str, channel_id: str, enabled: bool,
    ) -> NotificationChannelConfig:
        key = notification_key(org_id)
        async with self._exclusive(key, org_id):
            state = await self._load_initialized(key)
            channel = state.find_channel(channel_id)
            if channel is None:
                raise NotFoundError("Channel", channel_id)
            channel.enabled = enabled
            state.version += 1
            await self._save(key, state)
            return _copy_channel(channel)

    # ── Queries ──────────────────────────────────────────

    async def get_notification(
        self, org_id: str, notification_id: str,
    ) -> NotificationRecord | None:
        key = notification_key(org_id)
        async with self._exclusive(key, org_id):
            state = await self._load_initialized(key)
            record = state.find_notification(notification_id)
            return _copy(record) if record is not None else None

    async def get_notifications(
        self,
        org_id: str,
        *,
        type: NotificationType | None = None,
        status: NotificationStatus | None = None,
        limit: int = 100,
    ) -> list[NotificationRecord]:
        """History filtered by type/status, newest first."""
        key = notification_key(org_id)
        async with self._exclusive(key, org_id):
            state = await self._load_initialized(key)
            records = [
                n for n in state.notifications
                if (type is None or n.type == type)
                and (status is None or n.status == status)
            ]
            records.sort(key=lambda n: n.created_at, reverse=True)
            return [_copy(n) for n in records[:limit]]

    async def get_notifications_for_alert(
        self, org_id: str, alert_id: str,
    ) -> list[NotificationRecord]:
        key = notification_key(org_id)
        async with self._exclusive(key, org_id):
            state = await self._load_initialized(key)
            records = [n for n in state.notifications if n.triggered_by_alert_id == alert_id]
            records.sort(key=lambda n: n.created_at, reverse=True)
            return [_copy(n) for n in records]

    # ── Retry ────────────────────────────────────────────

    async def retry(self, org_id: str, notification_id: str) -> NotificationRecord:
        """Resend a Failed notification using its stored fields.

        Raises:
            NotFoundError: Unknown notification id.
            InvalidStateTransitionError: The notification is not Failed.
            RetryBudgetExceededError: ``MAX_RETRIES`` retries already used.
        """
        key = notification_key(org_id)
        async with self._exclusive(key, org_id):
            state = await self._load_initialized(key)
            record = state.find_notification(notification_id)
            if record is None:
                raise NotFoundError("Notification", notification_id)
            if record.status != NotificationStatus.FAILED:
                raise InvalidStateTransitionError(
                    f"Can only retry failed notifications. "
                    f"Current status: {record.status.value}"
                )
            if record.retry_count >= MAX_RETRIES:
                raise RetryBudgetExceededError(notification_id, MAX_RETRIES)

            record.status = NotificationStatus.RETRYING
            record.retry_count += 1
            state.version += 1
            await self._save(key, state)

            await self._publish(NotificationRetriedEvent(
                org_id=state.org_id,
                notification_id=record.notification_id,
                notification_type=record.type.value,
                recipient=record.recipient,
                retry_count=record.retry_count,
                occurred_at=self._clock(),
            ))
            self._metrics.record_retry(record.type.value)
            logger.info(
                "Retrying notification %s (attempt %d of %d)",
                notification_id, record.retry_count, MAX_RETRIES,
            )

            result = await self._invoke_sender(record, self._retry_options(record))
            await self._apply_result(key, state, record, result)
            return _copy(record)

    @staticmethod
    def _retry_options(record: NotificationRecord) -> dict[str, Any]:
        if record.type == NotificationType.SLACK and record.subject != DEFAULT_SLACK_SUBJECT:
            return {"channel": record.subject}
        return {}
