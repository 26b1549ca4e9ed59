"""Event publishers: fire-and-forget delivery of lifecycle events.

Publishing never fails the operation that emitted the event. Redis
pub/sub delivers to whoever is subscribed at publish time; consumers that
need durability subscribe before the engine starts.

Implementations:
- InMemoryEventPublisher: records events in order (tests)
- LoggingEventPublisher: logs each event at INFO (default for local runs)
- RedisEventPublisher: JSON on ``{prefix}:{stream}:{org_id}``
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from src.config.settings import get_settings
from src.events.schemas import Event

logger = logging.getLogger(__name__)


class EventPublisher(ABC):
    """Receives lifecycle and delivery events for downstream consumers."""

    @abstractmethod
    async def publish(self, event: Event) -> None:
        """Publish an event. Must not raise for delivery problems."""


class InMemoryEventPublisher(EventPublisher):
    """Collects published events for assertions."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    async def publish(self, event: Event) -> None:
        self.events.append(event)

    def of_kind(self, kind: str) -> list[Event]:
        """Events whose ``kind`` matches, in publish order."""
        return [e for e in self.events if e.kind == kind]

    def clear(self) -> None:
        self.events.clear()


class LoggingEventPublisher(EventPublisher):
    """Writes events to the log instead of a transport."""

    async def publish(self, event: Event) -> None:
        logger.info("Event %s: %s", event.kind, event.to_dict())


class RedisEventPublisher(EventPublisher):
    """Publishes events on Redis pub/sub channels, one per stream and org."""

    def __init__(self, redis_client: Any, channel_prefix: str | None = None) -> None:
        self._redis = redis_client
        self._prefix = channel_prefix or get_settings().event_channel_prefix

    def channel_for(self, event: Event) -> str:
        return f"{self._prefix}:{event.stream}:{event.org_id}"

    async def publish(self, event: Event) -> None:
        channel = self.channel_for(event)
        try:
            await self._redis.publish(channel, json.dumps(event.to_dict()))
        except Exception as e:
            logger.warning(
                "Failed to publish %s to %s: %s", event.kind, channel, e,
            )
