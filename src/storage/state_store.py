"""
Durable per-tenant state storage.

A tenant component keeps its whole state as one JSON-safe dict and calls
``save`` before every operation returns. Stores never merge or compare
versions: the single-writer-per-tenant discipline already serializes
writes for a key.

Implementations:
- InMemoryStateStore: process-local dict (tests, CLI dry runs)
- RedisStateStore: one JSON string per key in Redis
"""

import copy
import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import redis.asyncio as redis

from src.config.settings import get_settings

logger = logging.getLogger(__name__)


class StateStore(ABC):
    """Load/Save abstraction keyed by tenant state key."""

    @abstractmethod
    async def load(self, key: str) -> dict[str, Any] | None:
        """
        Load the state stored under ``key``.

        Returns:
            The state dict, or None if nothing has been saved yet.
        """

    @abstractmethod
    async def save(self, key: str, state: dict[str, Any]) -> None:
        """Persist ``state`` under ``key``, replacing any previous value."""

    async def close(self) -> None:
        """Release any held connections."""


class InMemoryStateStore(StateStore):
    """Keeps deep copies so callers cannot mutate stored state by accident."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}
        self.save_count = 0

    async def load(self, key: str) -> dict[str, Any] | None:
        state = self._data.get(key)
        return copy.deepcopy(state) if state is not None else None

    async def save(self, key: str, state: dict[str, Any]) -> None:
        self._data[key] = copy.deepcopy(state)
        self.save_count += 1

    def keys(self) -> list[str]:
        """Keys with saved state (for inspection/testing)."""
        return list(self._data)


class RedisStateStore(StateStore):
    """
    Stores each tenant's state as a JSON string at ``{prefix}:{key}``.

    Usage:
        store = RedisStateStore()
        await store.connect()
        await store.save("org:site:alerts", state)
        await store.close()
    """

    def __init__(
        self,
        redis_url: str | None = None,
        key_prefix: str | None = None,
        redis_client: redis.Redis | None = None,
    ) -> None:
        settings = get_settings()
        self._redis_url = redis_url or str(settings.redis_url)
        self._key_prefix = key_prefix or settings.state_key_prefix
        self._redis = redis_client

    async def connect(self) -> None:
        """Open the Redis connection if a client was not injected."""
        if self._redis is None:
            self._redis = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info("State store connected to Redis (prefix=%s)", self._key_prefix)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.close()
            self._redis = None
            logger.info("State store Redis connection closed")

    @property
    def redis(self) -> redis.Redis:
        """Get Redis client, raising if not connected."""
        if self._redis is None:
            raise RuntimeError("Not connected. Call connect() first.")
        return self._redis

    def _redis_key(self, key: str) -> str:
        return f"{self._key_prefix}:{key}"

    async def load(self, key: str) -> dict[str, Any] | None:
        raw = await self.redis.get(self._redis_key(key))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    async def save(self, key: str, state: dict[str, Any]) -> None:
        await self.redis.set(self._redis_key(key), json.dumps(state))
