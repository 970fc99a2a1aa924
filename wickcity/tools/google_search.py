from __future__ import annotations

from urllib.parse import parse_qs, quote, urlsplit

from bs4 import BeautifulSoup

from wickcity.research_core.fetch.service import PageFetcher
from wickcity.research_core.models.interfaces import EngineResult
from wickcity.tools.block_detection import looks_blocked
from wickcity.tools.web_utils import clean_text

GOOGLE_SEARCH_URL = "https://www.google.com/search?q={query}&num={count}&hl=en"

SNIPPET_SELECTORS = ".VwiC3b, [data-sncf], .IsZvec, .s3v9rd"


def _unwrap(href: str) -> str:
    if href.startswith("/url?"):
        target = parse_qs(urlsplit(href).query).get("q")
        return target[0] if target else href
    return href


def _is_google_host(href: str) -> bool:
    host = (urlsplit(href).hostname or "").lower()
    return host == "google.com" or ".google." in f".{host}"


def parse_results(html: str, max_results: int = 10) -> list[EngineResult]:
    soup = BeautifulSoup(html, "html.parser")
    results: list[EngineResult] = []
    seen: set[str] = set()

    for block in soup.select("div.g, div[data-sokoban-container]"):
        if len(results) >= max_results:
            break
        link = block.find("a", href=True)
        if link is None:
            continue
        href = _unwrap(str(link.get("href") or "").strip())
        if not href.startswith("http") or _is_google_host(href) or href in seen:
            continue
        seen.add(href)

        heading = block.find("h3")
        title = clean_text((heading or link).get_text(" "))
        snippet = " ".join(clean_text(el.get_text(" ")) for el in block.select(SNIPPET_SELECTORS)).strip()
        if not snippet:
            snippet = next(
                (
                    clean_text(span.get_text(" "))
                    for span in block.find_all("span")
                    if len(span.get_text()) > 30
                ),
                "",
            )
        if len(title) > 3:
            results.append(EngineResult(title=title, url=href, snippet=snippet, engine="google"))
    return results


async def search(
    fetcher: PageFetcher,
    query: str,
    *,
    max_results: int = 10,
    timeout: float = 12.0,
) -> list[EngineResult]:
    """Last resort: frequently blocked from server address ranges, so no retries."""
    html = await fetcher.fetch(
        GOOGLE_SEARCH_URL.format(query=quote(query, safe=""), count=max_results),
        timeout=timeout,
        max_retries=0,
    )
    if not html or len(html) < 500 or looks_blocked(html):
        return []
    return parse_results(html, max_results)
