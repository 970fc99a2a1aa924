from __future__ import annotations

from typing import Any
from urllib.parse import quote

from wickcity.research_core.fetch.service import PageFetcher
from wickcity.research_core.models.interfaces import InstantAnswer, WikiSummary
from wickcity.tools.web_utils import extract_keywords

DDG_INSTANT_URL = "https://api.duckduckgo.com/?q={query}&format=json&no_html=1&skip_disambig=1"
WIKIPEDIA_SUMMARY_URL = "https://en.wikipedia.org/api/rest_v1/page/summary/{title}"

MIN_ANSWER_CHARS = 30


def parse_instant_answer(data: Any, query: str) -> InstantAnswer | None:
    """Abstract text first, then infobox facts, then related topic texts."""
    if not isinstance(data, dict):
        return None

    answer = data.get("AbstractText") or data.get("Abstract") or data.get("Answer") or ""
    source = data.get("AbstractSource") or data.get("AnswerType") or ""
    abstract_url = data.get("AbstractURL") or ""
    if isinstance(answer, str) and len(answer) > MIN_ANSWER_CHARS:
        return InstantAnswer(answer=answer, source=str(source), url=str(abstract_url))

    infobox = data.get("Infobox")
    if isinstance(infobox, dict) and isinstance(infobox.get("content"), list):
        facts = ". ".join(
            f"{c['label']}: {c['value']}"
            for c in infobox["content"]
            if isinstance(c, dict) and c.get("label") and c.get("value")
        )
        if len(facts) > MIN_ANSWER_CHARS:
            return InstantAnswer(answer=facts, source="DuckDuckGo Infobox", url=str(abstract_url))

    topics = data.get("RelatedTopics")
    if isinstance(topics, list):
        texts = [
            t["Text"]
            for t in topics
            if isinstance(t, dict) and isinstance(t.get("Text"), str) and len(t["Text"]) > 20
        ][:3]
        related_text = " ".join(texts)
        if len(related_text) > MIN_ANSWER_CHARS:
            url = abstract_url or f"https://duckduckgo.com/?q={quote(query, safe='')}"
            return InstantAnswer(answer=related_text, source="DuckDuckGo", url=str(url))

    return None


async def get_instant_answer(fetcher: PageFetcher, query: str) -> InstantAnswer | None:
    data = await fetcher.fetch_json(
        DDG_INSTANT_URL.format(query=quote(query, safe="")),
        timeout=6.0,
        max_retries=1,
    )
    return parse_instant_answer(data, query)


def parse_wikipedia_summary(data: Any, fallback_title: str, encoded: str) -> WikiSummary | None:
    if not isinstance(data, dict):
        return None
    extract = data.get("extract")
    if not isinstance(extract, str) or len(extract) <= 40:
        return None
    page_url = (
        ((data.get("content_urls") or {}).get("desktop") or {}).get("page")
        or f"https://en.wikipedia.org/wiki/{encoded}"
    )
    return WikiSummary(
        title=str(data.get("title") or fallback_title),
        content=extract,
        description=str(data.get("description") or ""),
        url=str(page_url),
    )


async def get_wikipedia_summary(fetcher: PageFetcher, query: str) -> WikiSummary | None:
    """Try the query as a page title, then the joined keywords."""
    for attempt in (query, "_".join(extract_keywords(query))):
        if not attempt:
            continue
        encoded = quote(attempt.replace(" ", "_"), safe="")
        data = await fetcher.fetch_json(
            WIKIPEDIA_SUMMARY_URL.format(title=encoded),
            timeout=5.0,
            max_retries=0,
        )
        summary = parse_wikipedia_summary(data, attempt, encoded)
        if summary:
            return summary
    return None
