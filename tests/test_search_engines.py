from __future__ import annotations

from typing import Any

import pytest

from wickcity.tools import bing_search, duckduckgo_search, google_search, searxng_search
from wickcity.tools.instant_answer import (
    get_wikipedia_summary,
    parse_instant_answer,
    parse_wikipedia_summary,
)

FILLER = "<!-- " + "padding " * 80 + "-->"


class StubFetcher:
    """Serves canned bodies keyed by a URL substring."""

    def __init__(self, pages: dict[str, Any] | None = None):
        self.pages = pages or {}
        self.calls: list[tuple[str, dict]] = []

    def _lookup(self, url: str):
        for fragment, body in self.pages.items():
            if fragment in url:
                return body
        return None

    async def fetch(self, url: str, **kwargs):
        self.calls.append((url, kwargs))
        return self._lookup(url)

    async def fetch_json(self, url: str, **kwargs):
        self.calls.append((url, kwargs))
        return self._lookup(url)


DDG_HTML = f"""
<html><body>{FILLER}
<div class="result results_links web-result">
  <h2 class="result__title">
    <a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fen.wikipedia.org%2Fwiki%2FPhotosynthesis&amp;rut=abc">Photosynthesis - Wikipedia</a>
  </h2>
  <a class="result__snippet" href="#">Photosynthesis is a process used by plants to convert light energy.</a>
</div>
<div class="result results_links web-result">
  <h2 class="result__title"><a class="result__a" href="//duckduckgo.com/y.js?ad_domain=ads.example">Sponsored</a></h2>
</div>
<div class="result results_links web-result">
  <h2 class="result__title"><a class="result__a" href="https://www.britannica.com/science/photosynthesis">Photosynthesis | Britannica</a></h2>
  <a class="result__snippet" href="#">The process by which green plants transform light energy into chemical energy.</a>
</div>
</body></html>
"""

DDG_LITE = f"""
<html><body>{FILLER}<table>
<tr><td><a rel="nofollow" class="result-link" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.org%2Flite-a">Lite Result A</a></td></tr>
<tr><td class="result-snippet">First lite snippet text.</td></tr>
<tr><td><a rel="nofollow" class="result-link" href="https://example.org/lite-b">Lite Result B</a></td></tr>
<tr><td class="result-snippet">Second lite snippet text.</td></tr>
</table></body></html>
"""

BING_HTML = f"""
<html><body>{FILLER}<ol id="b_results">
<li class="b_algo"><h2><a href="https://example.com/bing-one">Bing One Title</a></h2>
  <div class="b_caption"><p>Bing snippet one describes the topic.</p></div></li>
<li class="b_algo"><h2><a href="https://www.bing.com/aclick?ld=ad">Ad result</a></h2></li>
<li class="b_algo"><h2><a href="https://example.com/bing-two">Bing Two Title</a></h2>
  <div class="b_caption"><p>Bing snippet two.</p></div></li>
</ol></body></html>
"""

GOOGLE_HTML = f"""
<html><body>{FILLER}
<div class="g"><a href="/url?q=https://example.net/google-one&amp;sa=U"><h3>Google Result One</h3></a>
  <div class="VwiC3b">Google snippet one with details.</div></div>
<div class="g"><a href="https://www.google.com/preferences"><h3>Search settings</h3></a></div>
<div class="g"><a href="https://example.net/google-two"><h3>Google Result Two</h3></a>
  <span>A fallback span snippet that is long enough to be used.</span></div>
</body></html>
"""


def test_decode_redirect_unwraps_uddg():
    href = "//duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.com%2Fpath%3Fa%3D1&rut=x"
    assert duckduckgo_search.decode_redirect(href) == "https://example.com/path?a=1"
    assert duckduckgo_search.decode_redirect("https://plain.example/") == "https://plain.example/"


def test_parse_ddg_html_results_skips_ads_and_decodes_links():
    results = duckduckgo_search.parse_html_results(DDG_HTML)
    assert [r.url for r in results] == [
        "https://en.wikipedia.org/wiki/Photosynthesis",
        "https://www.britannica.com/science/photosynthesis",
    ]
    assert results[0].title == "Photosynthesis - Wikipedia"
    assert results[0].snippet.startswith("Photosynthesis is a process")
    assert all(r.engine == "duckduckgo" for r in results)


def test_parse_ddg_html_respects_max_results():
    assert len(duckduckgo_search.parse_html_results(DDG_HTML, max_results=1)) == 1


def test_parse_ddg_lite_pairs_snippets_with_links():
    results = duckduckgo_search.parse_lite_results(DDG_LITE)
    assert [(r.url, r.snippet) for r in results] == [
        ("https://example.org/lite-a", "First lite snippet text."),
        ("https://example.org/lite-b", "Second lite snippet text."),
    ]
    assert results[0].engine == "ddg-lite"


@pytest.mark.asyncio
async def test_ddg_search_uses_two_retries_and_rejects_block_pages():
    fetcher = StubFetcher({"html.duckduckgo.com": DDG_HTML})
    results = await duckduckgo_search.search_html(fetcher, "photosynthesis")
    assert len(results) == 2
    url, kwargs = fetcher.calls[0]
    assert "q=photosynthesis" in url
    assert kwargs["max_retries"] == 2

    blocked = StubFetcher({"html.duckduckgo.com": "<p>Please solve this CAPTCHA challenge</p>" + FILLER})
    assert await duckduckgo_search.search_html(blocked, "photosynthesis") == []


@pytest.mark.asyncio
async def test_ddg_search_rejects_tiny_pages():
    fetcher = StubFetcher({"html.duckduckgo.com": "<html></html>"})
    assert await duckduckgo_search.search_html(fetcher, "q") == []


def test_parse_bing_results_filters_bing_links():
    results = bing_search.parse_results(BING_HTML)
    assert [r.url for r in results] == ["https://example.com/bing-one", "https://example.com/bing-two"]
    assert results[0].snippet == "Bing snippet one describes the topic."
    assert results[0].engine == "bing"


@pytest.mark.asyncio
async def test_bing_search_fetches_and_parses():
    fetcher = StubFetcher({"bing.com/search": BING_HTML})
    results = await bing_search.search(fetcher, "topic")
    assert len(results) == 2
    assert fetcher.calls[0][1]["max_retries"] == 1


def test_parse_google_results_unwraps_and_skips_google_hosts():
    results = google_search.parse_results(GOOGLE_HTML)
    assert [r.url for r in results] == [
        "https://example.net/google-one",
        "https://example.net/google-two",
    ]
    assert results[0].title == "Google Result One"
    assert results[0].snippet == "Google snippet one with details."
    assert results[1].snippet == "A fallback span snippet that is long enough to be used."


@pytest.mark.asyncio
async def test_google_search_never_retries():
    fetcher = StubFetcher({"google.com/search": GOOGLE_HTML})
    results = await google_search.search(fetcher, "topic")
    assert len(results) == 2
    assert fetcher.calls[0][1]["max_retries"] == 0


class _KeepOrder:
    def shuffle(self, items):
        return None


SEARX_PAYLOAD = {
    "results": [
        {"url": "https://example.io/one", "title": "One", "content": "First result."},
        {"url": "not-a-url", "title": "Broken"},
        {"url": "https://example.io/two", "title": "Two", "content": None},
    ]
}


def test_parse_searxng_payload():
    results = searxng_search.parse_payload(SEARX_PAYLOAD)
    assert [(r.url, r.snippet) for r in results] == [
        ("https://example.io/one", "First result."),
        ("https://example.io/two", ""),
    ]
    assert searxng_search.parse_payload({"error": "rate limited"}) == []
    assert searxng_search.parse_payload(None) == []


@pytest.mark.asyncio
async def test_searxng_stops_at_first_instance_with_results():
    fetcher = StubFetcher({"https://good.example": SEARX_PAYLOAD})
    results = await searxng_search.search(
        fetcher,
        "topic",
        instances=["https://bad.example", "https://good.example", "https://never.example"],
        rng=_KeepOrder(),
    )
    assert len(results) == 2
    assert len(fetcher.calls) == 2


@pytest.mark.asyncio
async def test_searxng_tries_at_most_max_attempts_instances():
    fetcher = StubFetcher({"https://d.example": SEARX_PAYLOAD})
    results = await searxng_search.search(
        fetcher,
        "topic",
        instances=["https://a.example", "https://b.example", "https://c.example", "https://d.example"],
        max_attempts=3,
        rng=_KeepOrder(),
    )
    assert results == []
    assert len(fetcher.calls) == 3


def test_parse_instant_answer_prefers_abstract():
    data = {
        "AbstractText": "Photosynthesis is a system of biological processes used by plants.",
        "AbstractSource": "Wikipedia",
        "AbstractURL": "https://en.wikipedia.org/wiki/Photosynthesis",
    }
    answer = parse_instant_answer(data, "photosynthesis")
    assert answer is not None
    assert answer.source == "Wikipedia"
    assert answer.url == "https://en.wikipedia.org/wiki/Photosynthesis"


def test_parse_instant_answer_falls_back_to_infobox_then_topics():
    infobox = {
        "AbstractText": "",
        "Infobox": {
            "content": [
                {"label": "Born", "value": "1879"},
                {"label": "Field", "value": "Physics"},
                {"label": "Known for", "value": "Relativity"},
                {"label": "Empty"},
            ]
        },
    }
    answer = parse_instant_answer(infobox, "einstein")
    assert answer is not None
    assert answer.answer == "Born: 1879. Field: Physics. Known for: Relativity"
    assert answer.source == "DuckDuckGo Infobox"

    topics = {"RelatedTopics": [{"Text": "Python is a high-level programming language."}, {"Name": "group"}]}
    answer = parse_instant_answer(topics, "python language")
    assert answer is not None
    assert answer.url == "https://duckduckgo.com/?q=python%20language"


def test_parse_instant_answer_rejects_short_text():
    assert parse_instant_answer({"AbstractText": "Too short."}, "q") is None
    assert parse_instant_answer("not a dict", "q") is None


def test_parse_wikipedia_summary():
    data = {
        "title": "Photosynthesis",
        "extract": "Photosynthesis is a biological process that converts light into chemical energy.",
        "description": "Biological process",
        "content_urls": {"desktop": {"page": "https://en.wikipedia.org/wiki/Photosynthesis"}},
    }
    summary = parse_wikipedia_summary(data, "photosynthesis", "photosynthesis")
    assert summary is not None
    assert summary.url == "https://en.wikipedia.org/wiki/Photosynthesis"
    assert parse_wikipedia_summary({"extract": "short"}, "x", "x") is None


@pytest.mark.asyncio
async def test_wikipedia_lookup_retries_with_keywords():
    data = {"title": "Photosynthesis", "extract": "A long enough extract about how plants turn light into sugar."}
    fetcher = StubFetcher({"/summary/photosynthesis": data})
    summary = await get_wikipedia_summary(fetcher, "what is photosynthesis")
    assert summary is not None
    assert summary.url == "https://en.wikipedia.org/wiki/photosynthesis"
    assert len(fetcher.calls) == 2
