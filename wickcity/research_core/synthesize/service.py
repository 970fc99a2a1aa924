from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

from wickcity.research_core.models.interfaces import ContentPiece, QueryType
from wickcity.tools.web_utils import clean_text, extract_keywords, sentences_similar

NO_CONTENT_ANSWER = "No relevant content found for this query."
NO_EXTRACT_ANSWER = "Could not extract relevant information. Please check the sources below."
EMPTY_ANSWER = "Could not generate an answer. Please check the sources below."

MIN_SENTENCE_CHARS = 18
MAX_SENTENCE_CHARS = 500
FALLBACK_EXCERPT_CHARS = 500
TRUNCATION_WINDOW = 0.7


@dataclass(frozen=True, slots=True)
class ModeConfig:
    max_pages: int
    sentences_per_piece: int
    max_length: int
    bullet: bool = False


MODE_CONFIGS: dict[str, ModeConfig] = {
    "default": ModeConfig(max_pages=7, sentences_per_piece=6, max_length=8000),
    "detailed": ModeConfig(max_pages=10, sentences_per_piece=12, max_length=15000),
    "concise": ModeConfig(max_pages=4, sentences_per_piece=3, max_length=3000, bullet=True),
}


def mode_config(mode: str) -> ModeConfig:
    return MODE_CONFIGS.get(mode, MODE_CONFIGS["default"])


def detect_query_type(query: str) -> QueryType:
    q = query.lower().strip()
    if re.match(r"^(what|define|who|meaning)\b", q) or re.search(r"\bis\b.*\?$", q):
        return "definition"
    if re.match(r"^how (to|do|can|should|does)", q):
        return "howto"
    if re.search(r"\bvs\b|\bversus\b|\bcompare|\bdifference between\b", q):
        return "comparison"
    if re.match(r"^(when|where|did|was)\b", q):
        return "factual"
    if re.match(r"^(best|top|recommend)\b", q) or re.search(r"\bbest\b|\btop \d+", q):
        return "list"
    if re.search(r"latest|recent|news|update|current|20[2-9]\d", q):
        return "current"
    if re.match(r"^why\b", q):
        return "explanation"
    return "general"


# Query-type boosts: (pattern, boost, match against lower-cased text?)
TYPE_SIGNALS: dict[str, tuple[tuple[re.Pattern[str], float, bool], ...]] = {
    "definition": (
        (re.compile(r"\bis an?\b|\bare\b|\brefers to\b|\bdefined as\b|\bmeans\b|\bknown as\b|\bis the\b"), 5, False),
    ),
    "howto": (
        (re.compile(r"step|method|process|guide|you can|you should|first|then|next|finally"), 4, True),
        (re.compile(r"^\d+[.)]\s"), 3, False),
    ),
    "comparison": (
        (re.compile(r"however|while|whereas|unlike|compared|difference|better|worse|advantage|disadvantage"), 4, True),
    ),
    "list": (
        (re.compile(r"^\d+[.)]\s|^[-•]\s|best|top|recommended|popular"), 3, False),
    ),
    "current": (
        (re.compile(r"20[2-9]\d|latest|recently|announced|released|updated|new "), 4, True),
    ),
    "explanation": (
        (re.compile(r"because|reason|due to|caused by|result of|therefore|since"), 4, True),
    ),
}

CITATION_RE = re.compile(r"according to|research|study|found that|shows? that|reported|announced|revealed")
YEAR_RE = re.compile(r"\d{4}|since \d|in \d")
FIGURE_RE = re.compile(r"\d+(\.\d+)?%|\$[\d,]+|\d+ (million|billion|trillion)")
SUPERLATIVE_RE = re.compile(r"first|largest|most|key|significant|important|major|primary")
CONNECTIVE_RE = re.compile(r"because|therefore|as a result|this means|for example|such as|including")

BOILERPLATE_RE = re.compile(
    r"cookie|privacy policy|terms of (service|use)|subscribe|sign up|log in|click here|advertisement|accept all|consent"
)
CODE_RE = re.compile(r"\|\s*\||\{\{|\}\}|function\(|var |const |class ")

SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+|\n+")


@dataclass(slots=True)
class ScoredSentence:
    text: str
    score: float
    source_index: int
    piece_index: int
    position: int


def split_sentences(text: str) -> list[str]:
    return [
        s.strip()
        for s in SENTENCE_SPLIT_RE.split(text)
        if MIN_SENTENCE_CHARS <= len(s.strip()) <= MAX_SENTENCE_CHARS
    ]


def score_sentence(
    sentence: str,
    *,
    keywords: Sequence[str],
    query_type: QueryType,
    position: int,
    priority: float,
) -> float:
    lower = sentence.lower()
    score = 0.0

    matched = sum(1 for token in keywords if token in lower)
    score += matched * 3
    if keywords and matched / len(keywords) > 0.6:
        score += 4

    for pattern, boost, use_lower in TYPE_SIGNALS.get(query_type, ()):
        if pattern.search(lower if use_lower else sentence):
            score += boost

    if CITATION_RE.search(lower):
        score += 2
    if YEAR_RE.search(sentence):
        score += 1.5
    if FIGURE_RE.search(sentence):
        score += 2.5
    if SUPERLATIVE_RE.search(lower):
        score += 1
    if CONNECTIVE_RE.search(lower):
        score += 1.5

    if position < 3:
        score += 2
    if position < 8:
        score += 1
    score += priority * 0.5

    if BOILERPLATE_RE.search(lower):
        score -= 20
    if CODE_RE.search(sentence):
        score -= 15
    if len(sentence.split()) < 4:
        score -= 5
    return score


def leading_excerpt(text: str, max_chars: int = FALLBACK_EXCERPT_CHARS) -> str:
    """Cleaned leading substring, cut back to a sentence or word boundary."""
    text = clean_text(text)
    if len(text) <= max_chars:
        return text
    cut = text[:max_chars]
    boundary = max(cut.rfind(". "), cut.rfind("! "), cut.rfind("? "))
    if boundary > max_chars * 0.5:
        return cut[: boundary + 1]
    space = cut.rfind(" ")
    return cut[:space] if space > 0 else cut


def truncate_at_sentence(text: str, max_length: int) -> str:
    """Cap ``text`` at ``max_length``, preferring the last sentence end in the trailing window."""
    if len(text) <= max_length:
        return text
    cut = text[:max_length]
    boundary = max(cut.rfind("."), cut.rfind("!"), cut.rfind("?"))
    if boundary > max_length * TRUNCATION_WINDOW:
        return cut[: boundary + 1]
    return cut


class AnswerSynthesizer:
    """Extractive, query-type-aware answer builder with inline citations."""

    def synthesize(
        self,
        query: str,
        pieces: Sequence[ContentPiece],
        mode: str = "default",
    ) -> str:
        if not pieces:
            return NO_CONTENT_ANSWER

        cfg = mode_config(mode)
        query_type = detect_query_type(query)
        keywords = extract_keywords(query)
        # Stable sort keeps discovery order among equal priorities.
        ordered = sorted(pieces, key=lambda p: p.priority, reverse=True)

        ranked = self._score_all(ordered, keywords, query_type)
        budget = cfg.sentences_per_piece * min(len(ordered), cfg.max_pages)
        selected = self._select(ranked, budget=budget, per_source=cfg.sentences_per_piece)

        if not selected:
            excerpt = leading_excerpt(ordered[0].content)
            if excerpt:
                return f"{excerpt} [{ordered[0].source_index}]"
            return NO_EXTRACT_ANSWER

        result = self._render(query, mode, cfg, ordered, selected, query_type)
        return truncate_at_sentence(result, cfg.max_length) or EMPTY_ANSWER

    def _score_all(
        self,
        pieces: Sequence[ContentPiece],
        keywords: Sequence[str],
        query_type: QueryType,
    ) -> list[ScoredSentence]:
        scored: list[ScoredSentence] = []
        for piece_index, piece in enumerate(pieces):
            raw = piece.content or ""
            if len(raw) < 20:
                continue
            contributed = False
            for position, sentence in enumerate(split_sentences(raw)):
                score = score_sentence(
                    sentence,
                    keywords=keywords,
                    query_type=query_type,
                    position=position,
                    priority=piece.priority,
                )
                if score > 0:
                    contributed = True
                    scored.append(
                        ScoredSentence(sentence, score, piece.source_index, piece_index, position)
                    )
            if not contributed:
                excerpt = leading_excerpt(raw, 300)
                if len(excerpt) >= MIN_SENTENCE_CHARS and not BOILERPLATE_RE.search(excerpt.lower()):
                    # Ranks below every positively scored sentence.
                    scored.append(ScoredSentence(excerpt, 0.01, piece.source_index, piece_index, 0))
        scored.sort(key=lambda s: s.score, reverse=True)
        return scored

    def _select(
        self,
        ranked: Sequence[ScoredSentence],
        *,
        budget: int,
        per_source: int,
    ) -> list[ScoredSentence]:
        selected: list[ScoredSentence] = []
        used: dict[int, int] = {}
        for candidate in ranked:
            if len(selected) >= budget:
                break
            if used.get(candidate.source_index, 0) >= per_source:
                continue
            if any(sentences_similar(candidate.text, s.text) for s in selected):
                continue
            selected.append(candidate)
            used[candidate.source_index] = used.get(candidate.source_index, 0) + 1
        return selected

    def _render(
        self,
        query: str,
        mode: str,
        cfg: ModeConfig,
        pieces: Sequence[ContentPiece],
        selected: Sequence[ScoredSentence],
        query_type: QueryType,
    ) -> str:
        grouped: dict[int, list[ScoredSentence]] = {}
        for sentence in selected:
            grouped.setdefault(sentence.source_index, []).append(sentence)
        for group in grouped.values():
            group.sort(key=lambda s: (s.piece_index, s.position))
        source_order = sorted(grouped, key=lambda idx: max(s.score for s in grouped[idx]), reverse=True)

        paragraphs: list[str] = []
        if mode == "detailed":
            paragraphs.append(f"## {query}\n")

        for source_index in source_order:
            texts = [s.text for s in grouped[source_index]]
            if cfg.bullet:
                paragraphs.append("\n".join(f"• {t}" for t in texts) + f" [{source_index}]")
                continue
            if mode == "detailed":
                heading = self._sub_heading(pieces, source_index)
                if heading:
                    paragraphs.append(f"### {heading}")
            paragraphs.append(" ".join(texts) + f" [{source_index}]")

        if query_type in ("list", "howto"):
            key_points = self._key_points(pieces)
            if len(key_points) > 2:
                paragraphs.append("\n**Key Points:**")
                paragraphs.append("\n".join(f"• {item}" for item in key_points))

        if mode == "detailed" and len(paragraphs) > 2:
            paragraphs.append("\n---")
            paragraphs.append(f"*Compiled from {len(grouped)} sources across the web.*")
        if mode == "concise":
            paragraphs.append(
                "\n*Concise summary. Select Default or Detailed mode for more information.*"
            )
        return "\n\n".join(paragraphs)

    @staticmethod
    def _sub_heading(pieces: Sequence[ContentPiece], source_index: int) -> str:
        piece = next((p for p in pieces if p.source_index == source_index), None)
        if piece is None:
            return ""
        heading = (piece.headings[0] if piece.headings else "") or piece.description
        return heading if 5 < len(heading) < 100 else ""

    @staticmethod
    def _key_points(pieces: Sequence[ContentPiece], limit: int = 8) -> list[str]:
        items: list[str] = []
        for piece in pieces[:3]:
            for item in piece.list_items[:limit]:
                if len(item) > 15 and not any(sentences_similar(item, seen) for seen in items):
                    items.append(item)
        return items[:limit]
