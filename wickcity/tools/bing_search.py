from __future__ import annotations

from urllib.parse import quote

from bs4 import BeautifulSoup

from wickcity.research_core.fetch.service import PageFetcher
from wickcity.research_core.models.interfaces import EngineResult
from wickcity.tools.block_detection import looks_blocked
from wickcity.tools.web_utils import clean_text

BING_SEARCH_URL = "https://www.bing.com/search?q={query}&count={count}&setlang=en"


def parse_results(html: str, max_results: int = 10) -> list[EngineResult]:
    soup = BeautifulSoup(html, "html.parser")
    results: list[EngineResult] = []
    seen: set[str] = set()

    for block in soup.select("li.b_algo, .b_algo"):
        if len(results) >= max_results:
            break
        link = block.select_one("h2 a") or block.find("a", href=True)
        if link is None:
            continue
        href = str(link.get("href") or "").strip()
        if not href.startswith("http") or "bing.com" in href or "microsoft.com/bing" in href:
            continue
        if href in seen:
            continue
        seen.add(href)

        title = clean_text(link.get_text(" "))
        snippet = " ".join(
            clean_text(el.get_text(" "))
            for el in block.select(".b_caption p, .b_lineclamp2, .b_lineclamp3, .b_lineclamp4")
        ).strip()
        if len(title) > 2:
            results.append(EngineResult(title=title, url=href, snippet=snippet, engine="bing"))
    return results


async def search(
    fetcher: PageFetcher,
    query: str,
    *,
    max_results: int = 10,
    timeout: float = 12.0,
) -> list[EngineResult]:
    html = await fetcher.fetch(
        BING_SEARCH_URL.format(query=quote(query, safe=""), count=max_results),
        timeout=timeout,
        max_retries=1,
    )
    if not html or len(html) < 500 or looks_blocked(html):
        return []
    return parse_results(html, max_results)
