"""Lifecycle/delivery events and the publishers that carry them."""

from src.events.publisher import (
    EventPublisher,
    InMemoryEventPublisher,
    LoggingEventPublisher,
    RedisEventPublisher,
)
from src.events.schemas import (
    AlertTriggeredEvent,
    Event,
    NotificationFailedEvent,
    NotificationQueuedEvent,
    NotificationRetriedEvent,
    NotificationSentEvent,
)

__all__ = [
    "AlertTriggeredEvent",
    "Event",
    "EventPublisher",
    "InMemoryEventPublisher",
    "LoggingEventPublisher",
    "NotificationFailedEvent",
    "NotificationQueuedEvent",
    "NotificationRetriedEvent",
    "NotificationSentEvent",
    "RedisEventPublisher",
]
