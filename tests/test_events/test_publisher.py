"""Tests for event serialization and publishers."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from src.events.publisher import InMemoryEventPublisher, RedisEventPublisher
from src.events.schemas import AlertTriggeredEvent, NotificationSentEvent


@pytest.fixture
def alert_event():
    return AlertTriggeredEvent(
        org_id="org-1",
        site_id="site-1",
        alert_id="alert-1",
        alert_type="LowStock",
        severity="Medium",
        title="Low stock: Milk",
        message="Milk is low",
        metadata={"ruleId": "r1"},
        occurred_at=datetime(2026, 2, 7, 12, 0, 0, tzinfo=timezone.utc),
    )


def test_to_dict(alert_event):
    data = alert_event.to_dict()
    assert data["kind"] == "alert.triggered"
    assert data["org_id"] == "org-1"
    assert data["occurred_at"] == "2026-02-07T12:00:00+00:00"
    assert data["metadata"] == {"ruleId": "r1"}
    json.dumps(data)


class TestInMemoryEventPublisher:
    @pytest.mark.asyncio
    async def test_records_in_order(self, alert_event):
        publisher = InMemoryEventPublisher()
        sent = NotificationSentEvent(
            org_id="org-1", notification_id="n1", notification_type="email", recipient="a",
        )
        await publisher.publish(alert_event)
        await publisher.publish(sent)

        assert publisher.events == [alert_event, sent]
        assert publisher.of_kind("notification.sent") == [sent]

        publisher.clear()
        assert publisher.events == []


class TestRedisEventPublisher:
    @pytest.mark.asyncio
    async def test_publishes_on_stream_channel(self, alert_event):
        redis_client = AsyncMock()
        publisher = RedisEventPublisher(redis_client, channel_prefix="events")

        await publisher.publish(alert_event)

        channel, payload = redis_client.publish.await_args.args
        assert channel == "events:alerts:org-1"
        assert json.loads(payload)["alert_id"] == "alert-1"

    @pytest.mark.asyncio
    async def test_errors_are_swallowed(self, alert_event):
        redis_client = AsyncMock()
        redis_client.publish.side_effect = ConnectionError("redis down")
        publisher = RedisEventPublisher(redis_client, channel_prefix="events")

        await publisher.publish(alert_event)  # does not raise
