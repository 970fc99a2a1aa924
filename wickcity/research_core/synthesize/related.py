from __future__ import annotations

import re
from typing import Sequence

from wickcity.research_core.models.interfaces import ContentPiece
from wickcity.tools.web_utils import extract_keywords

MAX_RELATED = 6
MIN_HEADING_CHARS = 8
MAX_HEADING_CHARS = 80

JUNK_HEADING_RE = re.compile(
    r"cookie|privacy|subscribe|sign up|menu|navigation|external links|references|see also|"
    r"further reading|contents|edit|advertisement|trending|popular|footer|header|sidebar|"
    r"share|comment|log in|register|search|home|about us|contact|disclaimer|skip to",
    re.IGNORECASE,
)

KEYWORD_TEMPLATES = (
    "What is {kw}?",
    "{kw} explained in detail",
    "Latest news about {kw}",
    "{kw} examples and use cases",
    "{kw} vs alternatives",
)

DEFAULT_RELATED = (
    "How does web search work?",
    "Tips for writing better search queries",
    "Popular topics people are searching for",
)


def generate_related_questions(
    query: str,
    pieces: Sequence[ContentPiece],
    *,
    limit: int = MAX_RELATED,
) -> list[str]:
    """Follow-up suggestions: page headings first, keyword templates after."""
    related: list[str] = []
    seen: set[str] = set()
    query_lower = query.strip().lower()

    for piece in pieces:
        for heading in piece.headings:
            h = heading.strip()
            key = h.lower()
            if not MIN_HEADING_CHARS <= len(h) <= MAX_HEADING_CHARS:
                continue
            if key == query_lower or key in seen or JUNK_HEADING_RE.search(h):
                continue
            seen.add(key)
            related.append(h)

    keywords = " ".join(extract_keywords(query))
    if len(keywords) > 2:
        for template in KEYWORD_TEMPLATES:
            variant = template.format(kw=keywords)
            if variant.lower() not in seen and variant.lower() != query_lower:
                seen.add(variant.lower())
                related.append(variant)

    if not related:
        related.extend(DEFAULT_RELATED)
    return related[:limit]
