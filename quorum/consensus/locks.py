"""Per-discussion serialization.

The evaluator does read-modify-write against the discussion store with
no optimistic-concurrency guard, so at most one evaluation may be in
flight per discussion id. DiscussionLocks hands out one asyncio.Lock per
id; different ids proceed concurrently.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TypeVar

T = TypeVar("T")


class DiscussionLocks:
    """Registry of per-discussion-id locks."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, discussion_id: str) -> AsyncIterator[None]:
        """Hold the lock for ``discussion_id`` for the duration of the block."""
        lock = self._locks.setdefault(discussion_id, asyncio.Lock())
        self._holders[discussion_id] = self._holders.get(discussion_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[discussion_id] -= 1
            if self._holders[discussion_id] == 0:
                del self._holders[discussion_id]
                del self._locks[discussion_id]

    async def run(self, discussion_id: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Run ``factory()`` while holding the lock for ``discussion_id``."""
        async with self.hold(discussion_id):
            return await factory()

    def is_locked(self, discussion_id: str) -> bool:
        lock = self._locks.get(discussion_id)
        return lock is not None and lock.locked()
