"""Tests for in-memory and Redis state stores."""

import json
from unittest.mock import AsyncMock

import pytest

from src.storage.state_store import InMemoryStateStore, RedisStateStore


class TestInMemoryStateStore:
    @pytest.mark.asyncio
    async def test_missing_key(self):
        assert await InMemoryStateStore().load("nope") is None

    @pytest.mark.asyncio
    async def test_save_and_load(self):
        store = InMemoryStateStore()
        await store.save("k", {"version": 1, "items": [1, 2]})

        assert await store.load("k") == {"version": 1, "items": [1, 2]}
        assert store.save_count == 1
        assert store.keys() == ["k"]

    @pytest.mark.asyncio
    async def test_isolated_copies(self):
        store = InMemoryStateStore()
        state = {"items": [1]}
        await store.save("k", state)
        state["items"].append(2)

        loaded = await store.load("k")
        assert loaded == {"items": [1]}
        loaded["items"].append(3)
        assert await store.load("k") == {"items": [1]}


class TestRedisStateStore:
    @pytest.mark.asyncio
    async def test_save_writes_json_under_prefix(self):
        redis_client = AsyncMock()
        store = RedisStateStore(key_prefix="state", redis_client=redis_client)

        await store.save("org:site:alerts", {"version": 2})

        redis_client.set.assert_awaited_once_with(
            "state:org:site:alerts", json.dumps({"version": 2}),
        )

    @pytest.mark.asyncio
    async def test_load(self):
        redis_client = AsyncMock()
        redis_client.get.return_value = b'{"version": 3}'
        store = RedisStateStore(key_prefix="state", redis_client=redis_client)

        assert await store.load("org:notifications") == {"version": 3}
        redis_client.get.assert_awaited_once_with("state:org:notifications")

    @pytest.mark.asyncio
    async def test_load_missing(self):
        redis_client = AsyncMock()
        redis_client.get.return_value = None
        store = RedisStateStore(redis_client=redis_client)

        assert await store.load("k") is None

    @pytest.mark.asyncio
    async def test_requires_connection(self):
        store = RedisStateStore(redis_url="redis://localhost:6379/1")
        with pytest.raises(RuntimeError, match="Not connected"):
            await store.load("k")

    @pytest.mark.asyncio
    async def test_close(self):
        redis_client = AsyncMock()
        store = RedisStateStore(redis_client=redis_client)
        await store.close()
        redis_client.close.assert_awaited_once()
