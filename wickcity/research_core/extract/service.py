from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any

from bs4 import BeautifulSoup, Tag
from loguru import logger

from wickcity.research_core.models.interfaces import ExtractedPage
from wickcity.tools.web_utils import clean_text

NOISE_TAGS = (
    "script", "style", "nav", "footer", "header", "aside", "iframe", "noscript",
    "form", "svg", "video", "audio", "canvas", "template", "select", "button",
    "input", "textarea",
)

NOISE_SELECTORS = (
    ".sidebar", ".nav", ".menu", ".footer", ".header", ".ad", ".advertisement",
    ".social", ".share", ".comments", ".comment", ".cookie", ".popup", ".modal",
    ".newsletter", ".subscribe", ".related-posts", ".recommended", ".promo",
    ".banner", ".widget", ".breadcrumb", ".pagination", ".toc",
    ".table-of-contents", '[role="navigation"]', '[role="banner"]',
    '[role="complementary"]', '[aria-hidden="true"]', ".skip-link",
    ".screen-reader-text", ".visually-hidden",
)

# Ordered: the first selector yielding enough text wins.
CONTENT_SELECTORS = (
    # Article / blog
    "article", '[role="main"]', "main",
    ".post-content", ".article-content", ".article-body", ".article__body",
    ".entry-content", ".content-body", ".story-body", ".post-body",
    ".page-content", ".text-content", ".blog-content",
    # Q&A
    ".s-prose", ".answer-body", ".post-text", ".question-body", ".AnswerContent",
    # Docs / wiki
    ".markdown-body", ".documentation-content", ".doc-content",
    ".mw-parser-output", "#mw-content-text", "#content", "#main-content",
    # News
    ".article-text", ".story-content", ".news-content", ".body-content",
    ".field-body", ".article__content", ".story-text",
    # How-to / knowledge
    ".how-to-content", ".tutorial-content", ".guide-content", ".answer", ".explanation",
    # Generic
    ".content", ".post", ".text", "#article", "#post-content",
    '[itemprop="articleBody"]', '[itemprop="text"]',
)

BLOCK_TAGS = ("div", "section", "article", "main", "td")

POSITIVE_CLASS_RE = re.compile(r"article|content|post|body|text|entry|main|story|prose|wiki|answer")
NEGATIVE_CLASS_RE = re.compile(
    r"sidebar|nav|menu|footer|header|\bads?\b|advert|comment|widget|related|social|cookie|banner|promo"
)


@dataclass(frozen=True, slots=True)
class DensityWeights:
    length: float = 2.0
    paragraph: float = 3.0
    paragraph_cap: float = 30.0
    link_density: float = 50.0
    heading: float = 2.0
    heading_cap: float = 8.0
    class_bonus: float = 15.0
    class_penalty: float = 25.0
    short_block_penalty: float = 5.0
    min_block_chars: int = 100
    short_block_chars: int = 200
    min_score: float = 5.0


def _element_text(el: Tag) -> str:
    return clean_text(el.get_text(" "))


def _structured_article_body(soup: BeautifulSoup) -> str:
    """Longest articleBody/text field found in JSON-LD blocks."""
    best = ""
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text()
        if not raw:
            continue
        try:
            payload: Any = json.loads(raw)
        except ValueError:
            continue
        if isinstance(payload, list):
            payload = payload[0] if payload else None
        if isinstance(payload, dict) and isinstance(payload.get("@graph"), list):
            graph_hit = next(
                (
                    node
                    for node in payload["@graph"]
                    if isinstance(node, dict) and (node.get("articleBody") or node.get("text"))
                ),
                None,
            )
            payload = graph_hit or payload
        if not isinstance(payload, dict):
            continue
        body = payload.get("articleBody") or payload.get("text") or ""
        if isinstance(body, str) and len(body) > len(best):
            best = body
    return best


class ExtractService:
    """Readability-style main-content extraction with a fallback chain.

    Structured data, then curated container selectors, then block density
    scoring, then the whole page text.
    """

    def __init__(
        self,
        *,
        max_chars: int = 15000,
        min_chars: int = 50,
        structured_min_chars: int = 200,
        selector_min_chars: int = 100,
        density_trigger_chars: int = 200,
        max_headings: int = 25,
        max_list_items: int = 25,
        weights: DensityWeights | None = None,
    ):
        self.max_chars = max(int(max_chars), 500)
        self.min_chars = max(int(min_chars), 1)
        self.structured_min_chars = structured_min_chars
        self.selector_min_chars = selector_min_chars
        self.density_trigger_chars = density_trigger_chars
        self.max_headings = max_headings
        self.max_list_items = max_list_items
        self.weights = weights or DensityWeights()

    def extract(self, *, url: str, raw_html: str) -> ExtractedPage | None:
        """Return the page's readable content and metadata, or None if too little text."""
        if not raw_html:
            return None
        try:
            soup = BeautifulSoup(raw_html, "html.parser")
            structured = _structured_article_body(soup)
            self._strip_noise(soup)

            if len(structured) > self.structured_min_chars:
                content = clean_text(structured)
            else:
                content = self._content_from_selectors(soup)
                if len(content) < self.density_trigger_chars:
                    content = self.score_blocks(soup) or content
                if len(content) < self.selector_min_chars:
                    body = soup.body or soup
                    content = _element_text(body)
        except Exception as exc:
            logger.warning(f"Extraction failed for {url}: {exc}")
            return None

        content = clean_text(content)[: self.max_chars]
        if len(content) < self.min_chars:
            return None

        return ExtractedPage(
            url=url,
            title=self._title(soup),
            description=self._description(soup),
            content=content,
            headings=self._headings(soup),
            list_items=self._list_items(soup),
        )

    def _strip_noise(self, soup: BeautifulSoup) -> None:
        for el in soup.find_all(NOISE_TAGS):
            if not el.decomposed:
                el.decompose()
        for el in soup.select(", ".join(NOISE_SELECTORS)):
            if not el.decomposed:
                el.decompose()

    def _content_from_selectors(self, soup: BeautifulSoup) -> str:
        for selector in CONTENT_SELECTORS:
            matches = soup.select(selector)
            if not matches:
                continue
            best = max((_element_text(el) for el in matches), key=len)
            if len(best) > self.selector_min_chars:
                return best
        return ""

    def score_block(self, el: Tag, text: str) -> float:
        w = self.weights
        score = math.log2(max(len(text), 1)) * w.length
        score += min(len(el.find_all("p")) * w.paragraph, w.paragraph_cap)

        link_chars = sum(len(clean_text(a.get_text(" "))) for a in el.find_all("a"))
        score -= (link_chars / max(len(text), 1)) * w.link_density

        class_id = " ".join(
            [" ".join(el.get("class") or []), str(el.get("id") or "")]
        ).lower()
        if POSITIVE_CLASS_RE.search(class_id):
            score += w.class_bonus
        if NEGATIVE_CLASS_RE.search(class_id):
            score -= w.class_penalty

        score += min(len(el.find_all(["h1", "h2", "h3"])) * w.heading, w.heading_cap)
        if len(text) < w.short_block_chars:
            score -= w.short_block_penalty
        return score

    def score_blocks(self, soup: BeautifulSoup) -> str | None:
        """Pick the highest-scoring block element by text and link density."""
        best_text: str | None = None
        best_score = float("-inf")
        for el in soup.find_all(BLOCK_TAGS):
            text = _element_text(el)
            if len(text) < self.weights.min_block_chars:
                continue
            score = self.score_block(el, text)
            if score > best_score:
                best_score, best_text = score, text
        if best_text is None or best_score <= self.weights.min_score:
            return None
        return best_text

    def _title(self, soup: BeautifulSoup) -> str:
        og = soup.find("meta", attrs={"property": "og:title"})
        title = og.get("content", "") if og else ""
        if not title and soup.title:
            title = soup.title.get_text()
        if not title:
            h1 = soup.find("h1")
            title = h1.get_text() if h1 else ""
        return clean_text(str(title))[:200]

    def _description(self, soup: BeautifulSoup) -> str:
        meta = soup.find("meta", attrs={"name": "description"}) or soup.find(
            "meta", attrs={"property": "og:description"}
        )
        return clean_text(str(meta.get("content", "")))[:400] if meta else ""

    def _headings(self, soup: BeautifulSoup) -> list[str]:
        headings: list[str] = []
        for el in soup.find_all(["h1", "h2", "h3"]):
            text = _element_text(el)
            if 3 < len(text) < 150:
                headings.append(text)
                if len(headings) >= self.max_headings:
                    break
        return headings

    def _list_items(self, soup: BeautifulSoup) -> list[str]:
        items: list[str] = []
        for el in soup.find_all(["li", "dt", "dd"]):
            text = _element_text(el)
            if 15 < len(text) < 300:
                items.append(text)
                if len(items) >= self.max_list_items:
                    break
        return items
