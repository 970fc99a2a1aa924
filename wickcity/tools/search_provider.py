from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Awaitable, Callable, Sequence

from wickcity.research_core.fetch.service import PageFetcher
from wickcity.research_core.models.interfaces import EngineResult
from wickcity.services.logger import log_engine_call
from wickcity.tools import bing_search, duckduckgo_search, google_search, searxng_search
from wickcity.tools.web_utils import is_valid_url, normalize_url

EngineFn = Callable[[str], Awaitable[list[EngineResult]]]


@dataclass(frozen=True, slots=True)
class Engine:
    name: str
    run: EngineFn


@dataclass(frozen=True, slots=True)
class CascadeStage:
    """A wave of engines run in parallel.

    ``run_below`` skips the wave once the merged result count reaches it;
    None means the wave always runs.
    """

    engines: tuple[Engine, ...]
    run_below: int | None = None


@dataclass
class SearchResponse:
    results: list[EngineResult]
    stages_run: int = 0
    engines_used: list[str] = field(default_factory=list)


class MultiEngineSearch:
    """Staged multi-engine search with URL de-duplication.

    Waves run one after another; engines inside a wave run concurrently.
    Every engine failure is absorbed as an empty result list.
    """

    def __init__(self, stages: Sequence[CascadeStage]):
        self.stages = tuple(stages)

    @classmethod
    def default(cls, fetcher: PageFetcher, config) -> "MultiEngineSearch":
        timeout = config.search_timeout_seconds
        primary = Engine(
            "duckduckgo",
            partial(duckduckgo_search.search_html, fetcher, max_results=15, timeout=timeout),
        )
        secondary = (
            Engine("ddg-lite", partial(duckduckgo_search.search_lite, fetcher, timeout=timeout)),
            Engine("bing", partial(bing_search.search, fetcher, timeout=timeout)),
        )
        aggregators = (
            Engine(
                "searxng",
                partial(
                    searxng_search.search,
                    fetcher,
                    instances=config.searxng_instance_list,
                    max_attempts=config.searxng_max_attempts,
                ),
            ),
            Engine("google", partial(google_search.search, fetcher, timeout=timeout)),
        )
        return cls(
            [
                CascadeStage((primary,)),
                CascadeStage(secondary, run_below=config.search_sufficient_results),
                CascadeStage(aggregators, run_below=config.search_minimum_results),
            ]
        )

    async def search(self, query: str) -> SearchResponse:
        merged: list[EngineResult] = []
        seen: set[str] = set()
        response = SearchResponse(results=merged)

        for stage in self.stages:
            if stage.run_below is not None and len(merged) >= stage.run_below:
                continue
            response.stages_run += 1
            batches = await asyncio.gather(*(self._call(engine, query) for engine in stage.engines))
            for engine, batch in zip(stage.engines, batches):
                if batch:
                    response.engines_used.append(engine.name)
                for result in batch:
                    if not is_valid_url(result.url):
                        continue
                    key = normalize_url(result.url)
                    if key in seen:
                        continue
                    seen.add(key)
                    result.url = key
                    merged.append(result)
        return response

    async def _call(self, engine: Engine, query: str) -> list[EngineResult]:
        started = time.monotonic()
        try:
            results = await engine.run(query)
        except Exception as exc:
            log_engine_call(
                engine.name,
                query,
                duration_ms=int((time.monotonic() - started) * 1000),
                status="error",
                error=f"{type(exc).__name__}: {exc}",
            )
            return []
        log_engine_call(
            engine.name,
            query,
            results_count=len(results),
            duration_ms=int((time.monotonic() - started) * 1000),
            status="success" if results else "empty",
        )
        return list(results or [])
