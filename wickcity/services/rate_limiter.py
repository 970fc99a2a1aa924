from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable


@dataclass(slots=True)
class RateWindow:
    window_start: float
    count: int


@dataclass(frozen=True, slots=True)
class RateDecision:
    allowed: bool
    retry_after: int = 0
    remaining: int = 0


class RateLimiter:
    """Per-client fixed window request cap."""

    def __init__(
        self,
        *,
        max_hits: int,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_hits = max(int(max_hits), 1)
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._windows: dict[str, RateWindow] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def hit(self, client_id: str) -> RateDecision:
        now = self._clock()
        window = self._windows.get(client_id)
        if window is None or now - window.window_start > self.window_seconds:
            self._windows[client_id] = RateWindow(window_start=now, count=1)
            return RateDecision(allowed=True, remaining=self.max_hits - 1)

        window.count += 1
        if window.count > self.max_hits:
            remaining_window = self.window_seconds - (now - window.window_start)
            return RateDecision(allowed=False, retry_after=max(math.ceil(remaining_window), 1))
        return RateDecision(allowed=True, remaining=self.max_hits - window.count)

    def sweep(self) -> int:
        """Forget clients whose window has elapsed."""
        now = self._clock()
        stale = [
            client
            for client, window in self._windows.items()
            if now - window.window_start > self.window_seconds
        ]
        for client in stale:
            del self._windows[client]
        return len(stale)
