from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal


Mode = Literal["default", "detailed", "concise", "compare", "troubleshoot", "recommend", "news"]
FormatMode = Literal["default", "detailed", "concise"]
QueryType = Literal[
    "definition",
    "howto",
    "comparison",
    "factual",
    "list",
    "current",
    "explanation",
    "general",
]

# Synthesis priority of a content piece by where it came from.
PRIORITY_INSTANT_ANSWER = 10
PRIORITY_WIKIPEDIA = 6
PRIORITY_SCRAPED_PAGE = 5
PRIORITY_SEARCH_SNIPPET = 2
PRIORITY_SNIPPET_ONLY = 1


@dataclass(slots=True)
class EngineResult:
    title: str
    url: str
    snippet: str
    engine: str


@dataclass(slots=True)
class ExtractedPage:
    url: str
    title: str
    description: str
    content: str
    headings: list[str] = field(default_factory=list)
    list_items: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Source:
    name: str
    url: str
    title: str
    index: int = 0


@dataclass(slots=True)
class ContentPiece:
    content: str
    source_index: int = 0
    headings: list[str] = field(default_factory=list)
    list_items: list[str] = field(default_factory=list)
    description: str = ""
    priority: float = PRIORITY_SNIPPET_ONLY


@dataclass(slots=True)
class InstantAnswer:
    answer: str
    source: str
    url: str


@dataclass(slots=True)
class WikiSummary:
    title: str
    content: str
    description: str
    url: str


@dataclass(slots=True)
class SynthesizedAnswer:
    answer: str
    sources: list[Source]
    related: list[str]
    title: str

    def to_dict(self) -> dict:
        return {
            "answer": self.answer,
            "sources": [
                {"name": s.name, "url": s.url, "title": s.title, "index": s.index}
                for s in self.sources
            ],
            "related": list(self.related),
            "title": self.title,
        }
