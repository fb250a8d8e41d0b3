"""Keyed asyncio locks for per-entity serialization of check-then-write sequences."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


logger = logging.getLogger(__name__)


class KeyedLock:
    """A lazily created asyncio.Lock per key.

    Holders of different keys never contend. A key's lock is discarded once no
    coroutine holds or waits for it, so the map does not grow with every user id.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] = self._users.get(key, 0) + 1

        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


# Serializes assignment for one user: the active-assignment check and the write
user_locks = KeyedLock("user")

# Serializes status changes of one task across users
task_locks = KeyedLock("task")

# Serializes dependency edge insertion: the reachability check and the insert
graph_locks = KeyedLock("dependency_graph")
GRAPH_LOCK_KEY = "edges"
