"""Tests for API routes."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from wickcity.api.deps import get_services
from wickcity.api.routes import discover
from wickcity.config import settings
from wickcity.main import app
from wickcity.research_core.models.interfaces import ExtractedPage, Source, SynthesizedAnswer
from wickcity.services.cache import RequestCache
from wickcity.services.container import ServiceContainer
from wickcity.services.rate_limiter import RateLimiter


class FakeAnswers:
    def __init__(self):
        self.calls: list[tuple[str, str]] = []
        self.instant_calls: list[str] = []
        self.delay = 0.0
        self.answer_text = "Glaciers are slow rivers of ice. [1]"
        self.page: ExtractedPage | None = None

    async def answer(self, query: str, mode: str = "default") -> SynthesizedAnswer:
        self.calls.append((query, mode))
        if self.delay:
            await asyncio.sleep(self.delay)
        return SynthesizedAnswer(
            answer=self.answer_text,
            sources=[Source(name="a.example", url="https://a.example/", title="T" * 300, index=1)],
            related=["How glaciers form"],
            title=query,
        )

    async def instant(self, query: str) -> dict:
        self.instant_calls.append(query)
        return {"answer": "Ice that moves.", "source": "Wikipedia", "url": "https://w.example/", "wikipedia": None}

    async def scrape_url(self, url: str) -> ExtractedPage | None:
        return self.page


class NullFetcher:
    async def aclose(self) -> None:
        return None


@pytest.fixture
def services():
    return ServiceContainer(
        fetcher=NullFetcher(),
        answers=FakeAnswers(),
        search_cache=RequestCache(max_entries=10, ttl_seconds=600),
        instant_cache=RequestCache(max_entries=10, ttl_seconds=600),
        search_limiter=RateLimiter(max_hits=25, window_seconds=60),
        general_limiter=RateLimiter(max_hits=60, window_seconds=60),
    )


@pytest.fixture
def client(services):
    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "wickcity"
    assert data["cache"] == {"search": 0, "instant": 0}
    assert data["version"] == "2.0.0"


def test_search_returns_answer_then_serves_from_cache(client, services):
    first = client.post("/api/search", json={"query": "What are glaciers", "mode": "default"})
    assert first.status_code == 200
    body = first.json()
    assert body["success"] is True
    assert body["data"]["answer"] == "Glaciers are slow rivers of ice. [1]"
    assert body["data"]["cached"] is False

    second = client.post("/api/search", json={"query": "what are GLACIERS  ", "mode": "default"})
    assert second.status_code == 200
    cached = second.json()["data"]
    assert cached["cached"] is True
    assert cached["answer"] == body["data"]["answer"]
    assert cached["sources"] == body["data"]["sources"]
    assert cached["related"] == body["data"]["related"]
    assert len(services.answers.calls) == 1


def test_get_search_applies_mode_rewrite(client, services):
    response = client.get("/api/search", params={"q": "wifi drops", "mode": "troubleshoot"})
    assert response.status_code == 200
    assert services.answers.calls == [("how to fix wifi drops", "default")]


def test_search_validates_query(client):
    assert client.post("/api/search", json={"query": "   "}).status_code == 400
    too_long = client.post("/api/search", json={"query": "x" * (settings.max_query_chars + 1)})
    assert too_long.status_code == 400
    assert "too long" in too_long.json()["detail"]


def test_search_output_is_sanitized(client, services):
    services.answers.answer_text = "Clean\x07 answer\x00 text [1]"
    response = client.post("/api/search", json={"query": "sanitize me"})
    data = response.json()["data"]
    assert data["answer"] == "Clean answer text [1]"
    assert len(data["sources"][0]["title"]) == 250
    assert data["sources"][0]["index"] == 1


def test_search_rate_limit_returns_retry_after(client, services):
    services.search_limiter = RateLimiter(max_hits=2, window_seconds=60)
    for i in range(2):
        assert client.post("/api/search", json={"query": f"query {i}"}).status_code == 200
    limited = client.post("/api/search", json={"query": "one more"})
    assert limited.status_code == 429
    assert int(limited.headers["Retry-After"]) > 0


def test_general_rate_limit_covers_suggestions(client, services):
    services.general_limiter = RateLimiter(max_hits=1, window_seconds=60)
    assert client.get("/api/suggestions").status_code == 200
    assert client.get("/api/suggestions").status_code == 429


def test_search_deadline_maps_to_504(client, services, monkeypatch):
    monkeypatch.setattr(settings, "search_deadline_seconds", 0.01)
    services.answers.delay = 0.5
    response = client.post("/api/search", json={"query": "slow query"})
    assert response.status_code == 504


def test_instant_requires_query_and_caches(client, services):
    assert client.get("/api/instant").status_code == 400
    first = client.get("/api/instant", params={"q": "Glacier"})
    second = client.get("/api/instant", params={"q": "glacier"})
    assert first.status_code == second.status_code == 200
    assert second.json()["data"]["answer"] == "Ice that moves."
    assert services.answers.instant_calls == ["Glacier"]


def test_instant_failure_maps_to_500(client, services):
    services.answers.instant = AsyncMock(side_effect=RuntimeError("instant api down"))
    response = client.get("/api/instant", params={"q": "broken"})
    assert response.status_code == 500
    services.answers.instant.assert_awaited_once_with("broken")


def test_scrape_validates_and_reports_unextractable_pages(client, services):
    assert client.post("/api/scrape", json={"url": "not a url"}).status_code == 400
    assert client.post("/api/scrape", json={"url": "https://a.example/"}).status_code == 422

    services.answers.page = ExtractedPage(
        url="https://a.example/",
        title="A",
        description="",
        content="Readable content " * 10,
        headings=["Intro"],
    )
    response = client.post("/api/scrape", json={"url": "https://a.example/"})
    assert response.status_code == 200
    assert response.json()["data"]["headings"] == ["Intro"]


def test_suggestions_filter(client):
    everything = client.get("/api/suggestions").json()["suggestions"]
    assert len(everything) == 6
    filtered = client.get("/api/suggestions", params={"q": "best"}).json()["suggestions"]
    assert filtered == ["Web development best practices", "Cybersecurity best practices", "Best laptops 2026"]


def test_news_passes_worker_payload_through(client, monkeypatch):
    async def fake_run_isolated(argv, *, timeout, failure_title):
        assert argv[-1] == "wickcity.workers.news_worker"
        return {
            "answer": "## Latest News",
            "sources": [{"name": "thehindu.com", "url": "https://thehindu.com/a", "title": "A", "index": "1"}],
            "related": [],
            "title": "Latest News - India",
            "articles": [{"title": "A headline", "url": "https://thehindu.com/a", "source": "The Hindu"}],
        }

    monkeypatch.setattr(discover, "run_isolated", fake_run_isolated)
    response = client.get("/api/news")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["sources"][0]["index"] == 1
    assert data["articles"][0]["title"] == "A headline"


def test_instant_and_scrape_strip_control_characters(client, services):
    async def noisy_instant(query: str) -> dict:
        return {
            "answer": "Ice\x00 that\x1b moves.",
            "source": "Wiki\x07pedia",
            "url": "https://w.example/",
            "wikipedia": {"title": "Gla\x01cier", "summary": "Slow\x1f ice", "url": "https://w.example/"},
        }

    services.answers.instant = noisy_instant
    data = client.get("/api/instant", params={"q": "noisy"}).json()["data"]
    assert data["answer"] == "Ice that moves."
    assert data["source"] == "Wikipedia"
    assert data["wikipedia"]["title"] == "Glacier"
    assert data["wikipedia"]["summary"] == "Slow ice"

    services.answers.page = ExtractedPage(
        url="https://a.example/",
        title="Ti\x07tle",
        description="Desc\x00",
        content="Readable\x0b content",
        headings=["Intro\x1b"],
        list_items=["Item\x02 one"],
    )
    page = client.post("/api/scrape", json={"url": "https://a.example/"}).json()["data"]
    assert page["title"] == "Title"
    assert page["description"] == "Desc"
    assert page["content"] == "Readable content"
    assert page["headings"] == ["Intro"]
    assert page["list_items"] == ["Item one"]


def test_instant_without_any_answer_keeps_nulls(client, services):
    async def empty_instant(query: str) -> dict:
        return {"answer": None, "source": None, "url": None, "wikipedia": None}

    services.answers.instant = empty_instant
    data = client.get("/api/instant", params={"q": "nothing"}).json()["data"]
    assert data == {"answer": None, "source": None, "url": None, "wikipedia": None}


def test_news_malformed_worker_payload_becomes_generic_answer(client, monkeypatch):
    async def fake_run_isolated(argv, *, timeout, failure_title):
        return {"answer": "x", "articles": [{"snippet": "no title"}]}

    monkeypatch.setattr(discover, "run_isolated", fake_run_isolated)
    response = client.get("/api/news")
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["title"] == "News Error"
    assert data["sources"] == []
    assert data["articles"] == []


def test_news_articles_strip_control_characters(client, monkeypatch):
    async def fake_run_isolated(argv, *, timeout, failure_title):
        return {
            "answer": "## News",
            "title": "Latest News - India",
            "articles": [{"title": "Head\x00line today", "snippet": "Sni\x1bppet", "source": "The\x07 Hindu"}],
        }

    monkeypatch.setattr(discover, "run_isolated", fake_run_isolated)
    article = client.get("/api/news").json()["data"]["articles"][0]
    assert article["title"] == "Headline today"
    assert article["snippet"] == "Snippet"
    assert article["source"] == "The Hindu"
