from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from functools import partial
from typing import Awaitable, Callable, Sequence
from urllib.parse import quote

from loguru import logger

from wickcity.research_core.extract.service import ExtractService
from wickcity.research_core.fetch.service import PageFetcher, is_blocked_domain, is_scrapable
from wickcity.research_core.models.interfaces import (
    PRIORITY_INSTANT_ANSWER,
    PRIORITY_SCRAPED_PAGE,
    PRIORITY_SEARCH_SNIPPET,
    PRIORITY_SNIPPET_ONLY,
    PRIORITY_WIKIPEDIA,
    ContentPiece,
    EngineResult,
    ExtractedPage,
    InstantAnswer,
    Source,
    SynthesizedAnswer,
    WikiSummary,
)
from wickcity.research_core.scheduler import BoundedScheduler
from wickcity.research_core.synthesize.related import generate_related_questions
from wickcity.research_core.synthesize.service import AnswerSynthesizer, mode_config
from wickcity.services.logger import log_pipeline_step
from wickcity.tools import instant_answer
from wickcity.tools.block_detection import looks_blocked
from wickcity.tools.search_provider import MultiEngineSearch
from wickcity.tools.web_utils import extract_domain

MIN_SNIPPET_CHARS = 25
MAX_SNIPPET_ONLY_SOURCES = 3
MIN_SUPPLEMENT_CHARS = 30
WIKIPEDIA_BELOW_PIECES = 3


def no_results_answer(query: str) -> str:
    return (
        f'No results found for "{query}". '
        "Try rephrasing your search or using different keywords."
    )


@dataclass(slots=True)
class _Attributed:
    """A content piece with its source, before indices are assigned."""

    source: Source
    piece: ContentPiece


def _snippet_entry(result: EngineResult, priority: float) -> _Attributed:
    return _Attributed(
        Source(name=extract_domain(result.url), url=result.url, title=result.title),
        ContentPiece(content=result.snippet, description=result.snippet, priority=priority),
    )


def assign_indices(entries: Sequence[_Attributed]) -> tuple[list[Source], list[ContentPiece]]:
    """Number sources 1..N in order, dropping repeated URLs, in one pass."""
    sources: list[Source] = []
    pieces: list[ContentPiece] = []
    seen: set[str] = set()
    for entry in entries:
        if entry.source.url in seen:
            continue
        seen.add(entry.source.url)
        index = len(sources) + 1
        entry.source.index = index
        entry.piece.source_index = index
        sources.append(entry.source)
        pieces.append(entry.piece)
    return sources, pieces


class AnswerService:
    """Search, fetch and extract pages in parallel, then synthesize a cited answer."""

    def __init__(
        self,
        fetcher: PageFetcher,
        *,
        search: MultiEngineSearch,
        extractor: ExtractService | None = None,
        synthesizer: AnswerSynthesizer | None = None,
        max_concurrent: int = 5,
        page_timeout: float = 8.0,
        min_content_chars: int = 50,
        instant_lookup: Callable[[str], Awaitable[InstantAnswer | None]] | None = None,
        wiki_lookup: Callable[[str], Awaitable[WikiSummary | None]] | None = None,
    ):
        self.fetcher = fetcher
        self.search = search
        self.extractor = extractor or ExtractService()
        self.synthesizer = synthesizer or AnswerSynthesizer()
        self.max_concurrent = max_concurrent
        self.page_timeout = page_timeout
        self.min_content_chars = min_content_chars
        self.instant_lookup = instant_lookup or partial(instant_answer.get_instant_answer, fetcher)
        self.wiki_lookup = wiki_lookup or partial(instant_answer.get_wikipedia_summary, fetcher)

    @classmethod
    def from_settings(cls, fetcher: PageFetcher, config) -> "AnswerService":
        return cls(
            fetcher,
            search=MultiEngineSearch.default(fetcher, config),
            extractor=ExtractService(
                max_chars=config.content_max_chars,
                min_chars=config.content_min_chars,
            ),
            max_concurrent=config.max_concurrent_fetches,
            page_timeout=config.page_timeout_seconds,
            min_content_chars=config.content_min_chars,
        )

    async def scrape_page(self, url: str, timeout: float | None = None) -> ExtractedPage | None:
        if not is_scrapable(url):
            return None
        html = await self.fetcher.fetch(url, timeout=timeout or self.page_timeout, max_retries=1)
        if not html or len(html) < 200 or looks_blocked(html):
            return None
        return self.extractor.extract(url=url, raw_html=html)

    async def answer(self, query: str, mode: str = "default") -> SynthesizedAnswer:
        started = time.monotonic()
        cfg = mode_config(mode)

        response = await self.search.search(query)
        results = response.results
        seen_urls = {r.url for r in results}
        log_pipeline_step(
            query,
            "search",
            "completed",
            {"results": len(results), "stages": response.stages_run, "engines": response.engines_used},
        )

        # Runs alongside page scraping.
        instant_task = asyncio.create_task(self.instant_lookup(query))

        to_scrape, snippet_only = self._partition(results, cfg.max_pages)
        scheduler = BoundedScheduler(self.max_concurrent)
        outcomes = await scheduler.run([partial(self.scrape_page, r.url) for r in to_scrape])

        entries: list[_Attributed] = []
        for result, outcome in zip(to_scrape, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"Scrape task for {result.url} failed: {outcome}")
                outcome = None
            if outcome is not None and len(outcome.content) > self.min_content_chars:
                entries.append(
                    _Attributed(
                        Source(
                            name=extract_domain(result.url),
                            url=result.url,
                            title=outcome.title or result.title,
                        ),
                        ContentPiece(
                            content=outcome.content,
                            headings=outcome.headings,
                            list_items=outcome.list_items,
                            description=outcome.description or result.snippet,
                            priority=PRIORITY_SCRAPED_PAGE,
                        ),
                    )
                )
            elif len(result.snippet) > MIN_SNIPPET_CHARS:
                entries.append(_snippet_entry(result, PRIORITY_SEARCH_SNIPPET))

        for result in snippet_only[:MAX_SNIPPET_ONLY_SOURCES]:
            entries.append(_snippet_entry(result, PRIORITY_SNIPPET_ONLY))
        log_pipeline_step(query, "scrape", "completed", {"pages": len(to_scrape), "pieces": len(entries)})

        instant = await self._settle(instant_task, "instant answer")
        if instant and len(instant.answer) > MIN_SUPPLEMENT_CHARS:
            url = instant.url or f"https://duckduckgo.com/?q={quote(query, safe='')}"
            if url not in seen_urls:
                entries.insert(
                    0,
                    _Attributed(
                        Source(name=extract_domain(url), url=url, title=instant.source or "Quick Answer"),
                        ContentPiece(content=instant.answer, priority=PRIORITY_INSTANT_ANSWER),
                    ),
                )

        if len(entries) < WIKIPEDIA_BELOW_PIECES:
            wiki = await self._settle(asyncio.ensure_future(self.wiki_lookup(query)), "wikipedia")
            if wiki and len(wiki.content) > MIN_SUPPLEMENT_CHARS and wiki.url not in seen_urls:
                entries.append(
                    _Attributed(
                        Source(name="en.wikipedia.org", url=wiki.url, title=wiki.title),
                        ContentPiece(
                            content=wiki.content,
                            description=wiki.description,
                            priority=PRIORITY_WIKIPEDIA,
                        ),
                    )
                )

        sources, pieces = assign_indices(entries)
        if not sources:
            log_pipeline_step(query, "synthesize", "no_results")
            return SynthesizedAnswer(
                answer=no_results_answer(query),
                sources=[],
                related=generate_related_questions(query, []),
                title=query,
            )

        answer = self.synthesizer.synthesize(query, pieces, mode)
        related = generate_related_questions(query, pieces)
        log_pipeline_step(
            query,
            "synthesize",
            "completed",
            {
                "sources": len(sources),
                "answer_chars": len(answer),
                "elapsed_ms": int((time.monotonic() - started) * 1000),
            },
        )
        return SynthesizedAnswer(answer=answer, sources=sources, related=related, title=query)

    async def instant(self, query: str) -> dict:
        """Quick answer from the instant-answer API, with a Wikipedia summary alongside."""
        ddg, wiki = await asyncio.gather(
            self.instant_lookup(query),
            self.wiki_lookup(query),
            return_exceptions=True,
        )
        ddg = ddg if isinstance(ddg, InstantAnswer) else None
        wiki = wiki if isinstance(wiki, WikiSummary) else None
        wiki_block = (
            {"title": wiki.title, "summary": wiki.content[:300], "url": wiki.url} if wiki else None
        )
        if ddg:
            return {"answer": ddg.answer, "source": ddg.source, "url": ddg.url, "wikipedia": wiki_block}
        if wiki:
            return {"answer": wiki.content, "source": "Wikipedia", "url": wiki.url, "wikipedia": wiki_block}
        return {"answer": None, "source": None, "url": None, "wikipedia": None}

    async def scrape_url(self, url: str) -> ExtractedPage | None:
        return await self.scrape_page(url, timeout=12.0)

    @staticmethod
    def _partition(
        results: Sequence[EngineResult],
        max_pages: int,
    ) -> tuple[list[EngineResult], list[EngineResult]]:
        to_scrape: list[EngineResult] = []
        snippet_only: list[EngineResult] = []
        for result in results:
            has_snippet = len(result.snippet) > MIN_SNIPPET_CHARS
            if is_blocked_domain(result.url):
                if has_snippet:
                    snippet_only.append(result)
            elif len(to_scrape) < max_pages:
                to_scrape.append(result)
            elif has_snippet:
                snippet_only.append(result)
        return to_scrape, snippet_only

    @staticmethod
    async def _settle(task: asyncio.Future, label: str):
        try:
            return await task
        except Exception as exc:
            logger.warning(f"{label} lookup failed: {exc}")
            return None
