from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from functools import partial
from typing import Sequence

from bs4 import BeautifulSoup
from loguru import logger

from wickcity.research_core.extract.service import ExtractService
from wickcity.research_core.fetch.service import PageFetcher
from wickcity.research_core.scheduler import BoundedScheduler
from wickcity.tools.web_utils import clean_text, extract_domain


@dataclass(frozen=True, slots=True)
class NewsFeed:
    name: str
    url: str


NEWS_FEEDS: tuple[NewsFeed, ...] = (
    NewsFeed("The Hindu", "https://www.thehindu.com/news/national/feeder/default.rss"),
    NewsFeed("Times of India", "https://timesofindia.indiatimes.com/rssfeedstopstories.cms"),
    NewsFeed("Hindustan Times", "https://www.hindustantimes.com/feeds/rss/india-news/rssfeed.xml"),
    NewsFeed("Indian Express", "https://indianexpress.com/feed/"),
    NewsFeed("NDTV", "https://feeds.feedburner.com/ndtvnews-top-stories"),
)

NEWS_RELATED = [
    "India politics latest updates",
    "India cricket news today",
    "Indian stock market today",
    "India technology news",
    "India weather forecast today",
]

ITEMS_PER_FEED = 6
MIN_TITLE_CHARS = 10
SNIPPET_CHARS = 400
DEDUPE_PREFIX_CHARS = 50
MAX_ARTICLES = 12
MAX_ENRICHED = 8
ENRICH_BELOW_CHARS = 50

_CDATA_RE = re.compile(r"<!\[CDATA\[|\]\]>")
_TAG_RE = re.compile(r"<[^>]*>")


@dataclass(slots=True)
class NewsArticle:
    title: str
    snippet: str
    url: str
    time: str
    source: str


def format_age(pub_date: str, now: datetime | None = None) -> str:
    """Render an RFC 822 date as "12 min ago" / "3h ago" / "2d ago" / "5 Mar 2026"."""
    try:
        published = parsedate_to_datetime(pub_date)
    except (TypeError, ValueError):
        return pub_date
    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)

    minutes = int((now - published).total_seconds() // 60)
    if minutes < 60:
        return f"{max(minutes, 0)} min ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    days = hours // 24
    if days < 7:
        return f"{days}d ago"
    return f"{published.day} {published.strftime('%b %Y')}"


def parse_feed(
    xml: str,
    source: str,
    *,
    max_items: int = ITEMS_PER_FEED,
    now: datetime | None = None,
) -> list[NewsArticle]:
    soup = BeautifulSoup(xml, "xml")
    articles: list[NewsArticle] = []
    for item in soup.find_all("item"):
        if len(articles) >= max_items:
            break
        title = clean_text(_child_text(item, "title"))
        if len(title) <= MIN_TITLE_CHARS:
            continue
        description = _TAG_RE.sub("", _CDATA_RE.sub("", _child_text(item, "description")))
        pub_date = _child_text(item, "pubDate")
        articles.append(
            NewsArticle(
                title=title,
                snippet=clean_text(description)[:SNIPPET_CHARS],
                url=_child_text(item, "link"),
                time=format_age(pub_date, now) if pub_date else "",
                source=source,
            )
        )
    return articles


def _child_text(item, name: str) -> str:
    child = item.find(name)
    return child.get_text().strip() if child else ""


def dedupe_articles(articles: Sequence[NewsArticle]) -> list[NewsArticle]:
    unique: list[NewsArticle] = []
    seen: set[str] = set()
    for article in articles:
        key = article.title.lower()[:DEDUPE_PREFIX_CHARS]
        if key in seen:
            continue
        seen.add(key)
        unique.append(article)
    return unique


def render_digest(articles: Sequence[NewsArticle]) -> str:
    lines = [
        "## Latest News from India",
        "",
        "*Live headlines from top Indian news sources*",
        "",
        "---",
        "",
    ]
    for i, article in enumerate(articles, start=1):
        lines += [f"### {i}. {article.title}", ""]
        if len(article.snippet) > 20:
            lines += [article.snippet, ""]
        meta = f"**{article.source}**"
        if article.time:
            meta += f" · {article.time}"
        lines += [meta, "", "---", ""]
    if not articles:
        lines += ["Unable to fetch news at the moment. Please try again in a few seconds.", ""]
    return "\n".join(lines)


class NewsDigestService:
    """Headline digest built from a fixed set of RSS feeds."""

    def __init__(
        self,
        fetcher: PageFetcher,
        extractor: ExtractService | None = None,
        *,
        feeds: Sequence[NewsFeed] = NEWS_FEEDS,
        max_concurrent: int = 5,
        timeout: float = 10.0,
    ):
        self.fetcher = fetcher
        self.extractor = extractor or ExtractService()
        self.feeds = tuple(feeds)
        self.max_concurrent = max_concurrent
        self.timeout = timeout

    async def fetch_feed(self, feed: NewsFeed) -> list[NewsArticle]:
        xml = await self.fetcher.fetch(feed.url, timeout=self.timeout)
        if not xml:
            logger.warning(f"News feed {feed.name} returned nothing")
            return []
        articles = parse_feed(xml, feed.name)
        logger.info(f"News feed {feed.name}: {len(articles)} articles")
        return articles

    async def article_snippet(self, url: str) -> str:
        html = await self.fetcher.fetch(url, timeout=self.timeout)
        if not html or len(html) < 500:
            return ""
        page = self.extractor.extract(url=url, raw_html=html)
        return page.content[:SNIPPET_CHARS] if page else ""

    async def latest(self) -> dict:
        scheduler = BoundedScheduler(self.max_concurrent)
        outcomes = await scheduler.run([partial(self.fetch_feed, feed) for feed in self.feeds])
        collected: list[NewsArticle] = []
        for feed, outcome in zip(self.feeds, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"News feed {feed.name} failed: {outcome}")
                continue
            collected.extend(outcome)

        articles = dedupe_articles(collected)[:MAX_ARTICLES]
        needs_body = [
            a for a in articles[:MAX_ENRICHED] if a.url and len(a.snippet) < ENRICH_BELOW_CHARS
        ]
        snippets = await scheduler.run([partial(self.article_snippet, a.url) for a in needs_body])
        for article, snippet in zip(needs_body, snippets):
            if isinstance(snippet, str) and len(snippet) > ENRICH_BELOW_CHARS:
                article.snippet = snippet

        return {
            "answer": render_digest(articles),
            "sources": [
                {
                    "name": extract_domain(a.url) or a.source,
                    "url": a.url,
                    "title": a.title,
                    "index": i,
                }
                for i, a in enumerate(articles, start=1)
            ],
            "related": list(NEWS_RELATED),
            "title": "Latest News - India",
            "articles": [asdict(a) for a in articles],
        }
