"""
In-memory TTL cache with single-flight refresh.

Values are stored as CacheEntry(value, stored_at) and served until
ttl_seconds have elapsed. On a miss, exactly one loader call runs per key;
concurrent callers await the same in-flight task and the entry is replaced
in one assignment once it finishes.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import Any, TypeVar

logger = logging.getLogger("claude-usage-audit")

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    stored_at: float


class TTLCache:
    """Get-or-refresh cache keyed by any hashable value."""

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry] = {}
        self._inflight: dict[Hashable, asyncio.Task] = {}
        self._epoch = 0
        self._key_generations: dict[Hashable, int] = {}

    def _generation(self, key: Hashable) -> tuple[int, int]:
        return self._epoch, self._key_generations.get(key, 0)

    def is_fresh(self, entry: CacheEntry) -> bool:
        return (self._clock() - entry.stored_at) < self.ttl_seconds

    def peek(self, key: Hashable) -> CacheEntry | None:
        """Return the stored entry (fresh or not) without loading."""
        return self._entries.get(key)

    async def get(self, key: Hashable, loader: Callable[[], Awaitable[T]]) -> T:
        """
        Return the cached value for key, loading it if missing or expired.

        Args:
            key: Cache key
            loader: Zero-argument coroutine function producing a fresh value

        Returns:
            The cached or freshly loaded value. Loader exceptions propagate
            to every waiter and nothing is stored.
        """
        entry = self._entries.get(key)
        if entry is not None and self.is_fresh(entry):
            return entry.value

        task = self._inflight.get(key)
        if task is None:
            logger.debug("Cache miss for %r, loading", key)
            task = asyncio.ensure_future(self._refresh(key, loader, self._generation(key)))
            self._inflight[key] = task
            task.add_done_callback(lambda done, k=key: self._forget(k, done))
        # Shield so one cancelled caller does not cancel the shared load
        return await asyncio.shield(task)

    async def _refresh(
        self, key: Hashable, loader: Callable[[], Awaitable[T]], generation: tuple[int, int],
    ) -> T:
        value = await loader()
        if generation == self._generation(key):
            self._entries[key] = CacheEntry(value=value, stored_at=self._clock())
        else:
            logger.debug("Discarding load for %r started before invalidation", key)
        return value

    def _forget(self, key: Hashable, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled():
            # Mark the exception retrieved; waiters already received it
            task.exception()

    def invalidate(self, key: Hashable | None = None) -> None:
        """Drop one entry, or every entry when key is None."""
        if key is None:
            self._epoch += 1
            self._entries.clear()
            self._inflight.clear()
        else:
            self._key_generations[key] = self._key_generations.get(key, 0) + 1
            self._entries.pop(key, None)
            self._inflight.pop(key, None)
