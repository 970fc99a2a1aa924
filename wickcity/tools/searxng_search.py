from __future__ import annotations

import random
from typing import Any, Sequence
from urllib.parse import quote

from loguru import logger

from wickcity.research_core.fetch.service import PageFetcher
from wickcity.research_core.models.interfaces import EngineResult
from wickcity.tools.web_utils import clean_text

SEARCH_PATH = "/search?q={query}&format=json&categories=general&language=en"


def parse_payload(payload: Any, max_results: int = 10) -> list[EngineResult]:
    if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
        return []
    results: list[EngineResult] = []
    for item in payload["results"]:
        if not isinstance(item, dict):
            continue
        url = item.get("url") or ""
        title = item.get("title") or ""
        if not (isinstance(url, str) and url.startswith("http") and title):
            continue
        results.append(
            EngineResult(
                title=clean_text(str(title)),
                url=url,
                snippet=clean_text(str(item.get("content") or "")),
                engine="searxng",
            )
        )
        if len(results) >= max_results:
            break
    return results


async def search(
    fetcher: PageFetcher,
    query: str,
    *,
    instances: Sequence[str],
    max_attempts: int = 3,
    max_results: int = 10,
    timeout: float = 8.0,
    rng: random.Random | None = None,
) -> list[EngineResult]:
    """Query public SearXNG mirrors: shuffle, try up to ``max_attempts``, stop at first hit."""
    candidates = list(instances)
    (rng or random).shuffle(candidates)
    for base in candidates[: max(max_attempts, 0)]:
        url = base.rstrip("/") + SEARCH_PATH.format(query=quote(query, safe=""))
        payload = await fetcher.fetch_json(url, timeout=timeout, max_retries=0)
        results = parse_payload(payload, max_results)
        if results:
            logger.debug(f"SearXNG: {len(results)} results from {base}")
            return results
        logger.debug(f"SearXNG: no results from {base}")
    return []
