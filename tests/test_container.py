import asyncio

import pytest

from wickcity.services.cache import RequestCache
from wickcity.services.container import DeadlineExceeded, ServiceContainer
from wickcity.services.rate_limiter import RateLimiter


class ClosingFetcher:
    def __init__(self):
        self.closed = False

    async def aclose(self):
        self.closed = True


def _container() -> ServiceContainer:
    return ServiceContainer(
        fetcher=ClosingFetcher(),
        answers=None,
        search_cache=RequestCache(max_entries=5, ttl_seconds=60, sweep_interval_seconds=1),
        instant_cache=RequestCache(max_entries=5, ttl_seconds=60, sweep_interval_seconds=1),
        search_limiter=RateLimiter(max_hits=5, window_seconds=60),
        general_limiter=RateLimiter(max_hits=5, window_seconds=60),
    )


@pytest.mark.asyncio
async def test_run_with_deadline_returns_result():
    services = _container()

    async def work():
        return 42

    assert await services.run_with_deadline(work(), 1) == 42
    await asyncio.sleep(0)
    assert services._background == set()


@pytest.mark.asyncio
async def test_expired_deadline_leaves_work_running():
    services = _container()
    finished = asyncio.Event()

    async def slow():
        await asyncio.sleep(0.2)
        finished.set()
        return "late"

    with pytest.raises(DeadlineExceeded):
        await services.run_with_deadline(slow(), 0.01)
    assert len(services._background) == 1

    await asyncio.wait_for(finished.wait(), 2)
    await asyncio.sleep(0)
    assert services._background == set()


@pytest.mark.asyncio
async def test_aclose_cancels_background_work_and_closes_fetcher():
    services = _container()
    services.start()

    async def forever():
        await asyncio.sleep(60)

    with pytest.raises(DeadlineExceeded):
        await services.run_with_deadline(forever(), 0.01)

    await services.aclose()
    assert services._background == set()
    assert services.fetcher.closed
    assert services._limiter_sweeper is None
