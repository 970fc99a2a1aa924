from __future__ import annotations

import re
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field, field_validator

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")


def _clean_str(value: Any) -> str:
    if value is None:
        return ""
    return _CONTROL_CHARS_RE.sub("", str(value))


CleanStr = Annotated[str, BeforeValidator(_clean_str)]
OptionalCleanStr = Annotated[str | None, BeforeValidator(lambda v: None if v is None else _clean_str(v))]


# --- Requests ---


class SearchRequest(BaseModel):
    query: str = ""
    mode: str | None = None


class ScrapeRequest(BaseModel):
    url: str = ""


# --- Responses ---


class SourceOut(BaseModel):
    name: CleanStr = ""
    url: CleanStr = ""
    title: CleanStr = ""
    index: int = 0

    @field_validator("title")
    @classmethod
    def _truncate_title(cls, value: str) -> str:
        return value[:250]

    @field_validator("index", mode="before")
    @classmethod
    def _coerce_index(cls, value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0


class AnswerPayload(BaseModel):
    answer: CleanStr = ""
    sources: list[SourceOut] = Field(default_factory=list)
    related: list[CleanStr] = Field(default_factory=list)
    title: CleanStr = ""
    cached: bool = False


class SearchResponse(BaseModel):
    success: bool = True
    data: AnswerPayload


class WikipediaBlock(BaseModel):
    title: CleanStr
    summary: CleanStr
    url: CleanStr


class InstantPayload(BaseModel):
    answer: OptionalCleanStr = None
    source: OptionalCleanStr = None
    url: OptionalCleanStr = None
    wikipedia: WikipediaBlock | None = None


class InstantResponse(BaseModel):
    success: bool = True
    data: InstantPayload


class ScrapedPage(BaseModel):
    url: CleanStr
    title: CleanStr
    description: CleanStr
    content: CleanStr
    headings: list[CleanStr]
    list_items: list[CleanStr] = Field(default_factory=list)


class ScrapeResponse(BaseModel):
    success: bool = True
    data: ScrapedPage


class NewsArticleOut(BaseModel):
    title: CleanStr
    snippet: CleanStr = ""
    url: CleanStr = ""
    time: CleanStr = ""
    source: CleanStr = ""


class NewsPayload(AnswerPayload):
    articles: list[NewsArticleOut] = Field(default_factory=list)


class NewsResponse(BaseModel):
    success: bool = True
    data: NewsPayload


class SuggestionsResponse(BaseModel):
    suggestions: list[CleanStr]


class HealthResponse(BaseModel):
    status: str
    service: str
    uptime: int
    cache: dict[str, int]
    version: str
