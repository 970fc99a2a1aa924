from __future__ import annotations

import re
from urllib.parse import urlsplit, urlunsplit

STOP_WORDS = frozenset(
    {
        "what", "is", "are", "how", "does", "do", "the", "a", "an", "in", "of", "to",
        "for", "and", "or", "but", "with", "about", "can", "will", "should", "would",
        "could", "why", "when", "where", "who", "which", "has", "have", "had", "was",
        "were", "been", "be", "this", "that", "these", "those", "it", "its", "my",
        "your", "our", "their", "me", "you", "us", "them", "on", "at", "by", "from",
        "up", "out", "if", "not", "no", "so", "just", "than", "too", "very", "also",
        "as", "into", "through", "between", "after", "before", "during", "explain",
        "tell", "give", "define", "describe", "please", "make", "need", "want",
        "much", "many",
    }
)

DUPLICATE_THRESHOLD = 0.55


def is_valid_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlsplit(url)
        return all([result.scheme in ("http", "https"), result.netloc])
    except Exception:
        return False


def normalize_url(url: str) -> str:
    """Trim whitespace and drop the fragment; the result is the dedup key."""
    parsed = urlsplit(url.strip())
    return urlunsplit((parsed.scheme, parsed.netloc, parsed.path, parsed.query, ""))


def extract_domain(url: str) -> str:
    """Extract domain from URL for display."""
    try:
        host = urlsplit(url).hostname or ""
    except ValueError:
        return url
    if not host:
        return url
    return host[4:] if host.startswith("www.") else host


def clean_text(text: str) -> str:
    """Collapse all whitespace runs to single spaces."""
    return re.sub(r"\s+", " ", text).strip()


def extract_keywords(query: str) -> list[str]:
    words = re.sub(r"[?!.,;:'\"()]", "", query.lower()).split()
    keywords = [w for w in words if len(w) > 1 and w not in STOP_WORDS]
    return keywords or [w for w in words if len(w) > 1]


def _significant_words(text: str) -> set[str]:
    return {w for w in text.lower().split() if len(w) > 3}


def jaccard_similarity(a: str, b: str) -> float:
    """Jaccard similarity of the words longer than three characters."""
    s1 = _significant_words(a)
    s2 = _significant_words(b)
    union = s1 | s2
    if not union:
        return 0.0
    return len(s1 & s2) / len(union)


def sentences_similar(a: str, b: str, *, threshold: float = DUPLICATE_THRESHOLD) -> bool:
    """Near-duplicate check used for sentence and list-item selection."""
    if len(_significant_words(a)) < 3 or len(_significant_words(b)) < 3:
        return False
    return jaccard_similarity(a, b) > threshold
