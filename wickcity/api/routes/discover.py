from __future__ import annotations

from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import ValidationError

from wickcity.api.deps import get_services, search_rate_limit
from wickcity.models.schemas import NewsPayload, NewsResponse, SuggestionsResponse
from wickcity.services.container import ServiceContainer
from wickcity.services.workers import analysis_failed, module_argv, run_isolated

router = APIRouter(prefix="/api", tags=["discover"])

NEWS_WORKER_MODULE = "wickcity.workers.news_worker"

SUGGESTIONS = [
    "What is artificial intelligence?",
    "Explain quantum computing",
    "Latest technology trends",
    "How does machine learning work?",
    "Climate change effects",
    "Space exploration breakthroughs",
    "Mental health tips",
    "History of ancient civilizations",
    "Web development best practices",
    "Cybersecurity best practices",
    "How to learn programming",
    "Best laptops 2026",
]


def filter_suggestions(q: str, limit: int = 6) -> list[str]:
    q = q.strip().lower()
    if not q:
        return SUGGESTIONS[:limit]
    return [s for s in SUGGESTIONS if q in s.lower()]


@router.get("/news", response_model=NewsResponse, dependencies=[Depends(search_rate_limit)])
async def news(services: ServiceContainer = Depends(get_services)):
    """Latest headlines, gathered in a separate worker process."""
    result = await run_isolated(
        module_argv(NEWS_WORKER_MODULE),
        timeout=services.news_timeout,
        failure_title="News Error",
    )
    try:
        payload = NewsPayload.model_validate(result)
    except ValidationError as exc:
        logger.error(f"News worker returned a malformed payload: {exc.error_count()} errors")
        payload = NewsPayload.model_validate(analysis_failed("News Error"))
    return NewsResponse(data=payload)


@router.get("/suggestions", response_model=SuggestionsResponse)
async def suggestions(q: str = ""):
    return SuggestionsResponse(suggestions=filter_suggestions(q))
