"""Centralized logging service using loguru."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger

from wickcity.config import settings

LOG_DIR = Path(settings.log_dir)
LOG_DIR.mkdir(parents=True, exist_ok=True)

# Remove default handler
logger.remove()

# Console handler. stdout stays reserved for worker JSON output.
logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level=settings.app_log_level.upper(),
    colorize=True,
)

logger.add(
    LOG_DIR / "wickcity_{time:YYYY-MM-DD}.log",
    format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
    level="DEBUG",
    rotation="00:00",
    retention="7 days",
    compression="zip",
)

for logger_name in (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "httpx",
    "httpcore",
    "hpack",
    "asyncio",
):
    logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())


def _stamped(**fields) -> dict:
    return {"timestamp": datetime.now(timezone.utc).isoformat(), **fields}


def log_engine_call(
    engine: str,
    query: str,
    results_count: int = 0,
    duration_ms: int = 0,
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    """Log one search engine adapter call."""
    record = _stamped(
        engine=engine,
        query=query[:100],
        results=results_count,
        duration_ms=duration_ms,
        status=status,
        error=error,
    )
    if error:
        logger.warning(f"ENGINE_CALL_FAILED: {record}")
    else:
        logger.info(f"ENGINE_CALL: {record}")


def log_pipeline_step(query: str, step: str, status: str, data: Optional[dict] = None) -> None:
    """Log a stage of the search-to-answer pipeline."""
    logger.info(f"PIPELINE_STEP: {_stamped(query=query[:100], step=step, status=status, data=data)}")


def log_event(event_type: str, message: str, **kwargs) -> None:
    logger.info(f"EVENT: {_stamped(event_type=event_type, message=message, **kwargs)}")
