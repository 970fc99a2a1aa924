from __future__ import annotations

import asyncio
import json
import sys
from typing import Sequence

from loguru import logger

MAX_STDERR_LOG_CHARS = 500


class WorkerFailed(Exception):
    """A worker process timed out, exited non-zero or printed invalid JSON."""


def module_argv(module: str, *args: str) -> list[str]:
    return [sys.executable, "-m", module, *args]


def analysis_failed(title: str = "Analysis Error") -> dict:
    return {
        "answer": "The analysis failed. Please try again in a few moments.",
        "sources": [],
        "related": [],
        "title": title,
    }


async def run_worker(argv: Sequence[str], *, timeout: float) -> dict:
    """Run ``argv`` as a child process and parse its stdout as a JSON object."""
    process = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise WorkerFailed(f"timed out after {timeout}s")

    if stderr:
        logger.debug(f"[worker stderr] {stderr.decode(errors='replace')[:MAX_STDERR_LOG_CHARS]}")
    if process.returncode != 0:
        raise WorkerFailed(f"exit status {process.returncode}")
    try:
        payload = json.loads(stdout)
    except ValueError as exc:
        raise WorkerFailed(f"unparseable output: {exc}") from exc
    if not isinstance(payload, dict):
        raise WorkerFailed("output is not a JSON object")
    return payload


async def run_isolated(
    argv: Sequence[str],
    *,
    timeout: float,
    failure_title: str = "Analysis Error",
) -> dict:
    """Like ``run_worker`` but any worker failure becomes a generic answer object."""
    try:
        return await run_worker(argv, timeout=timeout)
    except (WorkerFailed, OSError) as exc:
        logger.error(f"Worker {' '.join(argv[-2:])} failed: {exc}")
        return analysis_failed(failure_title)
