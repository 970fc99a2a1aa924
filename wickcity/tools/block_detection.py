"""Heuristic classifier for CAPTCHA and anti-bot interstitial pages."""

from __future__ import annotations

from typing import Iterable

# Real result pages are large; block pages are short and say so.
BLOCK_PAGE_MAX_CHARS = 25000

BLOCK_SIGNAL_PHRASES: tuple[str, ...] = (
    "unusual traffic from your",
    "are you a robot",
    "verify you are human",
    "complete the security check",
    "automated requests from your",
    "please solve this captcha",
    "captcha challenge",
    "access denied",
    "request blocked",
    "your ip has been",
)


def looks_blocked(
    html: str | None,
    *,
    phrases: Iterable[str] = BLOCK_SIGNAL_PHRASES,
    max_chars: int = BLOCK_PAGE_MAX_CHARS,
) -> bool:
    """Return True when a short response body contains a block signal phrase."""
    if not html or len(html) > max_chars:
        return False
    lowered = html.lower()
    return any(phrase in lowered for phrase in phrases)
