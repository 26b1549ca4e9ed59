"""Pytest fixtures for alert-engine tests."""

from datetime import datetime, timedelta, timezone

import pytest
from prometheus_client import CollectorRegistry

from src.config.settings import Settings
from src.events.publisher import InMemoryEventPublisher
from src.observability.metrics import MetricsCollector
from src.storage.state_store import InMemoryStateStore

ORG_ID = "org-1"
SITE_ID = "site-1"


class FakeClock:
    """Controllable clock; call it to read, ``advance`` to move forward."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 2, 7, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing."""
    return Settings(
        environment="development",
        log_level="DEBUG",
        redis_url="redis://localhost:6379/1",  # Use DB 1 for tests
        state_backend="memory",
        event_backend="memory",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class FlakyStateStore(InMemoryStateStore):
    """In-memory store whose saves raise while ``fail_saves`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_saves = False

    async def save(self, key, state) -> None:
        if self.fail_saves:
            raise ConnectionError("store unavailable")
        await super().save(key, state)


@pytest.fixture
def store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def flaky_store() -> FlakyStateStore:
    return FlakyStateStore()


@pytest.fixture
def publisher() -> InMemoryEventPublisher:
    return InMemoryEventPublisher()


@pytest.fixture
def metrics() -> MetricsCollector:
    """Collector on a private registry so tests never share counters."""
    return MetricsCollector(registry=CollectorRegistry())
