"""Fetch the news digest in its own process and print it as JSON on stdout.

Logging goes to stderr only; stdout carries exactly one JSON document.
"""
from __future__ import annotations

import asyncio
import json
import sys

from loguru import logger

from wickcity.config import settings
from wickcity.research_core.extract.service import ExtractService
from wickcity.research_core.fetch.service import PageFetcher
from wickcity.research_core.news.service import NewsDigestService


async def build_digest() -> dict:
    fetcher = PageFetcher.from_settings(settings)
    try:
        service = NewsDigestService(
            fetcher,
            ExtractService(max_chars=settings.content_max_chars),
            max_concurrent=settings.max_concurrent_fetches,
        )
        return await service.latest()
    finally:
        await fetcher.aclose()


def configure_logging() -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.app_log_level.upper())


def main() -> int:
    configure_logging()
    try:
        result = asyncio.run(build_digest())
        code = 0
    except Exception as exc:
        logger.exception("News worker failed")
        result = {
            "answer": f"Failed to fetch news: {exc}",
            "sources": [],
            "related": [],
            "title": "News Error",
            "articles": [],
        }
        code = 1
    logger.info(f"News worker done: {len(result['articles'])} articles")
    sys.stdout.write(json.dumps(result))
    sys.stdout.flush()
    return code


if __name__ == "__main__":
    sys.exit(main())
