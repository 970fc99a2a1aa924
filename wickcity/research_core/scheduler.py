from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable, TypeVar

T = TypeVar("T")

TaskFactory = Callable[[], Awaitable[T]]


class BoundedScheduler:
    """Run task closures with at most ``limit`` in flight.

    Waiting tasks start in submission order as running ones finish.
    """

    def __init__(self, limit: int = 5):
        self.limit = max(int(limit), 1)
        self.peak_in_flight = 0
        self._in_flight = 0

    async def run(
        self,
        factories: Iterable[TaskFactory[T]],
    ) -> list[T | BaseException]:
        """Run every factory; failures come back as exception objects in place."""
        semaphore = asyncio.Semaphore(self.limit)

        async def guarded(factory: TaskFactory[T]) -> T:
            async with semaphore:
                self._in_flight += 1
                self.peak_in_flight = max(self.peak_in_flight, self._in_flight)
                try:
                    return await factory()
                finally:
                    self._in_flight -= 1

        return await asyncio.gather(
            *(guarded(factory) for factory in factories),
            return_exceptions=True,
        )
