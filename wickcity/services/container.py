from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, TypeVar

from loguru import logger

from wickcity.research_core.fetch.service import PageFetcher
from wickcity.services.answer_service import AnswerService
from wickcity.services.cache import RequestCache
from wickcity.services.rate_limiter import RateLimiter

T = TypeVar("T")


class DeadlineExceeded(Exception):
    """The end-to-end deadline for a request elapsed."""


@dataclass
class ServiceContainer:
    """Long-lived services owned by the application lifespan."""

    fetcher: PageFetcher
    answers: AnswerService
    search_cache: RequestCache
    instant_cache: RequestCache
    search_limiter: RateLimiter
    general_limiter: RateLimiter
    news_timeout: float = 90.0
    started_at: float = field(default_factory=time.monotonic)
    _background: set[asyncio.Task] = field(default_factory=set)
    _limiter_sweeper: asyncio.Task | None = None

    @classmethod
    def from_settings(cls, config) -> "ServiceContainer":
        fetcher = PageFetcher.from_settings(config)
        return cls(
            fetcher=fetcher,
            answers=AnswerService.from_settings(fetcher, config),
            search_cache=RequestCache(
                max_entries=config.search_cache_max_entries,
                ttl_seconds=config.search_cache_ttl_seconds,
                sweep_interval_seconds=config.cache_sweep_interval_seconds,
                name="search-cache",
            ),
            instant_cache=RequestCache(
                max_entries=config.instant_cache_max_entries,
                ttl_seconds=config.instant_cache_ttl_seconds,
                sweep_interval_seconds=config.cache_sweep_interval_seconds,
                name="instant-cache",
            ),
            search_limiter=RateLimiter(
                max_hits=config.search_rate_limit,
                window_seconds=config.rate_limit_window_seconds,
            ),
            general_limiter=RateLimiter(
                max_hits=config.general_rate_limit,
                window_seconds=config.rate_limit_window_seconds,
            ),
            news_timeout=config.news_worker_timeout_seconds,
        )

    @property
    def uptime_seconds(self) -> int:
        return int(time.monotonic() - self.started_at)

    def start(self) -> None:
        self.search_cache.start_sweeper()
        self.instant_cache.start_sweeper()
        if self._limiter_sweeper is None:
            self._limiter_sweeper = asyncio.create_task(self._sweep_limiters(), name="limiter-sweeper")

    async def _sweep_limiters(self) -> None:
        interval = self.general_limiter.window_seconds
        while True:
            await asyncio.sleep(interval)
            self.search_limiter.sweep()
            self.general_limiter.sweep()

    async def run_with_deadline(self, work: Awaitable[T], seconds: float) -> T:
        """Await ``work`` for at most ``seconds``.

        On expiry the work keeps running in the background and its result is
        dropped; it is not cancelled mid-fetch.
        """
        task = asyncio.ensure_future(work)
        self._background.add(task)
        task.add_done_callback(self._forget)
        try:
            return await asyncio.wait_for(asyncio.shield(task), seconds)
        except asyncio.TimeoutError as exc:
            raise DeadlineExceeded(f"deadline of {seconds}s exceeded") from exc

    def _forget(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Background request failed: {task.exception()!r}")

    async def aclose(self) -> None:
        if self._limiter_sweeper is not None:
            self._limiter_sweeper.cancel()
            try:
                await self._limiter_sweeper
            except asyncio.CancelledError:
                pass
            self._limiter_sweeper = None
        await self.search_cache.aclose()
        await self.instant_cache.aclose()
        pending = list(self._background)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await self.fetcher.aclose()
