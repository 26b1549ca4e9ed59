"""Tenant keys and single-writer-per-tenant execution.

Every mutating or reading operation on a tenant's alert or notification
state runs inside ``TenantExecutor.exclusive(key)``. Calls for the same
key queue behind each other in arrival order (``asyncio.Lock`` wakes
waiters FIFO); calls for different keys never contend.

Usage:
    executor = TenantExecutor()
    async with executor.exclusive(alert_key(org_id, site_id)):
        state = await store.load(...)
        ...
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


def alert_key(org_id: str, site_id: str) -> str:
    """State key for a site's alert component."""
    return f"{org_id}:{site_id}:alerts"


def notification_key(org_id: str) -> str:
    """State key for an organization's notification component."""
    return f"{org_id}:notifications"


class TenantExecutor:
    """Keyed mutual exclusion: at most one in-flight operation per key.

    Locks are created on first use and dropped once no caller holds or
    waits on them, so idle tenants cost nothing.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @property
    def active_keys(self) -> int:
        """Number of keys with a running or queued operation."""
        return len(self._locks)

    @asynccontextmanager
    async def exclusive(self, key: str) -> AsyncIterator[None]:
        """Hold the key's lock for the duration of the block."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._holders[key] = self._holders.get(key, 0) + 1

        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]
