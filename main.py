"""Wickcity - multi-engine web search with cited answers

Simple CLI for running one query through the full pipeline.
"""

import argparse
import asyncio

from wickcity.config import settings
from wickcity.research_core.fetch.service import PageFetcher
from wickcity.services.answer_service import AnswerService
from wickcity.services.query_modes import SUPPORTED_MODES, resolve_query


async def run_search(query: str, mode: str | None = None):
    """Search the web for the query and print the answer."""
    resolved = resolve_query(query, mode)
    print(f"Search query: {resolved.search_query}")
    print("-" * 50)

    fetcher = PageFetcher.from_settings(settings)
    try:
        answers = AnswerService.from_settings(fetcher, settings)
        result = await answers.answer(resolved.search_query, resolved.format_mode)
    finally:
        await fetcher.aclose()

    print(result.answer)
    print(f"\n{'='*50}")
    print(f"SOURCES ({len(result.sources)}):")
    for source in result.sources:
        print(f"  [{source.index}] {source.title or source.name}")
        print(f"      {source.url}")
    if result.related:
        print("\nRELATED:")
        for question in result.related:
            print(f"  - {question}")


def main():
    parser = argparse.ArgumentParser(description="Wickcity web search")
    parser.add_argument("--query", "-q", required=True, help="Search query")
    parser.add_argument("--mode", "-m", choices=SUPPORTED_MODES, default="default", help="Answer mode")

    args = parser.parse_args()

    asyncio.run(run_search(args.query, args.mode))


if __name__ == "__main__":
    main()
