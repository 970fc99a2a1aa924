from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable

from loguru import logger


@dataclass(slots=True)
class CacheEntry:
    value: Any
    inserted_at: float


def cache_key(mode: str, query: str) -> str:
    return f"{mode}:{query.strip().lower()}"


class RequestCache:
    """In-memory TTL cache with a capacity cap.

    Expired entries are dropped lazily on read and by a periodic sweep. When
    full, the oldest inserted entry is evicted. Not thread-safe: it is only
    touched from the event loop.
    """

    def __init__(
        self,
        *,
        max_entries: int = 80,
        ttl_seconds: float = 600,
        sweep_interval_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ):
        self.max_entries = max(int(max_entries), 1)
        self.ttl_seconds = float(ttl_seconds)
        self.sweep_interval_seconds = float(sweep_interval_seconds)
        self.name = name
        self.evictions = 0
        self._clock = clock
        self._store: dict[str, CacheEntry] = {}
        self._sweeper: asyncio.Task | None = None

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: str) -> bool:
        return key in self._store

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.inserted_at > self.ttl_seconds

    def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if self._expired(entry, self._clock()):
            del self._store[key]
            return None
        return entry.value

    def set(self, key: str, value: Any) -> None:
        # Re-inserting moves the key to the newest position.
        self._store.pop(key, None)
        while len(self._store) >= self.max_entries:
            oldest = next(iter(self._store))
            del self._store[oldest]
            self.evictions += 1
        self._store[key] = CacheEntry(value=value, inserted_at=self._clock())

    def sweep(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._store.items() if self._expired(entry, now)]
        for key in expired:
            del self._store[key]
        return len(expired)

    def clear(self) -> None:
        self._store.clear()

    def start_sweeper(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(), name=f"{self.name}-sweeper")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            purged = self.sweep()
            if purged:
                logger.debug(f"{self.name}: swept {purged} expired entries")

    async def aclose(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
