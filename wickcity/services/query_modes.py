from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime

SUPPORTED_MODES = ("default", "detailed", "concise", "compare", "troubleshoot", "recommend", "news")

_COMPARE_RE = re.compile(r"\bvs\b|\bcompare", re.IGNORECASE)
_FIX_RE = re.compile(r"\bfix\b|\bsolve", re.IGNORECASE)
_RECOMMEND_RE = re.compile(r"\bbest\b|\brecommend", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class ResolvedQuery:
    search_query: str
    format_mode: str


def resolve_query(query: str, mode: str | None, *, year: int | None = None) -> ResolvedQuery:
    """Rewrite the query for its mode and pick the synthesizer formatting mode.

    Unknown modes fall back to default handling.
    """
    query = query.strip()
    mode = (mode or "").strip().lower()

    if mode in ("detailed", "concise"):
        return ResolvedQuery(query, mode)
    if mode == "compare" and not _COMPARE_RE.search(query):
        return ResolvedQuery(f"compare {query}", "default")
    if mode == "troubleshoot" and not _FIX_RE.search(query):
        return ResolvedQuery(f"how to fix {query}", "default")
    if mode == "recommend" and not _RECOMMEND_RE.search(query):
        return ResolvedQuery(f"best {query} recommendations", "default")
    if mode == "news":
        return ResolvedQuery(f"{query} latest news {year or datetime.now().year}", "default")
    return ResolvedQuery(query, "default")
