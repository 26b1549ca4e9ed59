"""Storage layer for per-tenant state persistence."""

from src.storage.state_store import InMemoryStateStore, RedisStateStore, StateStore

__all__ = ["InMemoryStateStore", "RedisStateStore", "StateStore"]
