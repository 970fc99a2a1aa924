from __future__ import annotations

from urllib.parse import parse_qs, quote, urlsplit

from bs4 import BeautifulSoup

from wickcity.research_core.fetch.service import PageFetcher
from wickcity.research_core.models.interfaces import EngineResult
from wickcity.tools.block_detection import looks_blocked
from wickcity.tools.web_utils import clean_text

HTML_ENDPOINT = "https://html.duckduckgo.com/html/?q={query}"
LITE_ENDPOINT = "https://lite.duckduckgo.com/lite/?q={query}"


def decode_redirect(href: str) -> str:
    """Unwrap DuckDuckGo's ``/l/?uddg=<target>`` redirect links."""
    href = href.strip()
    if "uddg=" not in href:
        return href
    if href.startswith("//"):
        href = "https:" + href
    target = parse_qs(urlsplit(href).query).get("uddg")
    return target[0] if target else href


def _acceptable(href: str) -> bool:
    return href.startswith("http") and "duckduckgo.com" not in href


def parse_html_results(html: str, max_results: int = 15) -> list[EngineResult]:
    soup = BeautifulSoup(html, "html.parser")
    results: list[EngineResult] = []
    seen: set[str] = set()

    for block in soup.select(".result, .web-result"):
        if len(results) >= max_results:
            break
        link = block.select_one(".result__a, .result-link") or block.find("a", href=True)
        if link is None:
            continue
        href = decode_redirect(str(link.get("href") or ""))
        if not _acceptable(href) or href in seen:
            continue
        seen.add(href)

        title = clean_text(link.get_text(" "))
        snippet_el = block.select_one(".result__snippet, .result-snippet") or block.select_one(
            ".result__body, .result-body"
        )
        snippet = clean_text(snippet_el.get_text(" ")) if snippet_el else ""
        if len(title) > 2:
            results.append(EngineResult(title=title, url=href, snippet=snippet, engine="duckduckgo"))
    return results


def parse_lite_results(html: str, max_results: int = 10) -> list[EngineResult]:
    """The lite endpoint is a table layout with snippets in separate rows."""
    soup = BeautifulSoup(html, "html.parser")
    results: list[EngineResult] = []
    seen: set[str] = set()

    for link in soup.select('a.result-link, table a[href*="http"]'):
        if len(results) >= max_results:
            break
        href = decode_redirect(str(link.get("href") or ""))
        if not _acceptable(href) or href in seen:
            continue
        seen.add(href)
        title = clean_text(link.get_text(" "))
        if len(title) > 2:
            results.append(EngineResult(title=title, url=href, snippet="", engine="ddg-lite"))

    for result, snippet_el in zip(results, soup.select("td.result-snippet, .result-snippet")):
        result.snippet = clean_text(snippet_el.get_text(" "))
    return results


async def search_html(
    fetcher: PageFetcher,
    query: str,
    *,
    max_results: int = 15,
    timeout: float = 12.0,
) -> list[EngineResult]:
    """Primary engine: the DuckDuckGo HTML endpoint."""
    html = await fetcher.fetch(
        HTML_ENDPOINT.format(query=quote(query, safe="")),
        timeout=timeout,
        max_retries=2,
    )
    if not html or len(html) < 300 or looks_blocked(html):
        return []
    return parse_html_results(html, max_results)


async def search_lite(
    fetcher: PageFetcher,
    query: str,
    *,
    max_results: int = 10,
    timeout: float = 12.0,
) -> list[EngineResult]:
    html = await fetcher.fetch(
        LITE_ENDPOINT.format(query=quote(query, safe="")),
        timeout=timeout,
        max_retries=1,
    )
    if not html or len(html) < 200 or looks_blocked(html):
        return []
    return parse_lite_results(html, max_results)
