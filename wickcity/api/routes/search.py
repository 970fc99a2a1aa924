from __future__ import annotations

import time

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from wickcity.api.deps import get_services, search_rate_limit
from wickcity.config import settings
from wickcity.models.schemas import (
    AnswerPayload,
    InstantPayload,
    InstantResponse,
    ScrapedPage,
    ScrapeRequest,
    ScrapeResponse,
    SearchRequest,
    SearchResponse,
)
from wickcity.services import logger as log_service
from wickcity.services.cache import cache_key
from wickcity.services.container import DeadlineExceeded, ServiceContainer
from wickcity.services.query_modes import resolve_query
from wickcity.tools.web_utils import is_valid_url

router = APIRouter(prefix="/api", tags=["search"], dependencies=[Depends(search_rate_limit)])

TIMED_OUT_DETAIL = "Request timed out. Please try a simpler query."


def _validated_query(query: str | None) -> str:
    query = (query or "").strip()
    if not query:
        raise HTTPException(status_code=400, detail="Query is required.")
    if len(query) > settings.max_query_chars:
        raise HTTPException(
            status_code=400,
            detail=f"Query too long (max {settings.max_query_chars} chars).",
        )
    return query


async def _search(query: str | None, mode: str | None, services: ServiceContainer) -> SearchResponse:
    started = time.monotonic()
    query = _validated_query(query)
    resolved = resolve_query(query, mode)
    key = cache_key(resolved.format_mode, resolved.search_query)

    cached = services.search_cache.get(key)
    if cached is not None:
        logger.info(f"Cache hit for {resolved.search_query!r}")
        return SearchResponse(data=cached.model_copy(update={"cached": True}))

    try:
        result = await services.run_with_deadline(
            services.answers.answer(resolved.search_query, resolved.format_mode),
            settings.search_deadline_seconds,
        )
    except DeadlineExceeded:
        log_service.log_event("search_timeout", "Search deadline exceeded", query=query[:100])
        raise HTTPException(status_code=504, detail=TIMED_OUT_DETAIL)
    except Exception:
        logger.exception(f"Search failed for {query[:100]!r}")
        raise HTTPException(status_code=500, detail="Search failed. Please try again.")

    payload = AnswerPayload.model_validate(result.to_dict())
    services.search_cache.set(key, payload)
    log_service.log_event(
        "search_completed",
        "Search done",
        query=query[:100],
        mode=resolved.format_mode,
        answer_chars=len(payload.answer),
        sources=len(payload.sources),
        duration_ms=int((time.monotonic() - started) * 1000),
    )
    return SearchResponse(data=payload)


@router.post("/search", response_model=SearchResponse)
async def search(
    request: SearchRequest,
    services: ServiceContainer = Depends(get_services),
):
    """Answer a query from live web results."""
    return await _search(request.query, request.mode, services)


@router.get("/search", response_model=SearchResponse)
async def search_get(
    q: str = "",
    mode: str = "",
    services: ServiceContainer = Depends(get_services),
):
    return await _search(q, mode, services)


@router.get("/instant", response_model=InstantResponse)
async def instant(
    q: str = "",
    services: ServiceContainer = Depends(get_services),
):
    """Quick answer from the instant-answer API and Wikipedia."""
    query = (q or "").strip()
    if not query:
        raise HTTPException(status_code=400, detail='Query parameter "q" is required.')

    key = cache_key("instant", query)
    cached = services.instant_cache.get(key)
    if cached is not None:
        return InstantResponse(data=cached)

    try:
        result = await services.run_with_deadline(
            services.answers.instant(query),
            settings.instant_deadline_seconds,
        )
    except DeadlineExceeded:
        raise HTTPException(status_code=504, detail=TIMED_OUT_DETAIL)
    except Exception:
        logger.exception(f"Instant answer failed for {query[:100]!r}")
        raise HTTPException(status_code=500, detail="Instant answer failed.")

    payload = InstantPayload.model_validate(result)
    services.instant_cache.set(key, payload)
    return InstantResponse(data=payload)


@router.post("/scrape", response_model=ScrapeResponse)
async def scrape(
    request: ScrapeRequest,
    services: ServiceContainer = Depends(get_services),
):
    """Fetch one URL and return its extracted content."""
    url = (request.url or "").strip()
    if not is_valid_url(url):
        raise HTTPException(status_code=400, detail="Valid URL is required.")

    try:
        page = await services.run_with_deadline(
            services.answers.scrape_url(url),
            settings.scrape_deadline_seconds,
        )
    except DeadlineExceeded:
        raise HTTPException(status_code=504, detail=TIMED_OUT_DETAIL)
    except Exception:
        logger.exception(f"Scrape failed for {url}")
        raise HTTPException(status_code=500, detail="Scrape failed.")

    if page is None:
        raise HTTPException(status_code=422, detail="Could not extract content from this URL.")
    return ScrapeResponse(
        data=ScrapedPage(
            url=page.url,
            title=page.title,
            description=page.description,
            content=page.content,
            headings=page.headings,
            list_items=page.list_items,
        )
    )
