"""Loguru logging setup.

A stderr sink at the requested level, plus an optional rotating file sink at
DEBUG. Stdlib logging (slack_bolt, slack_sdk, aiohttp) is intercepted and
funneled to loguru.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from loguru import logger

_configured = False

CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"


_LOGURU_LEVELS = frozenset({"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"})


class InterceptHandler(logging.Handler):
    """Forward stdlib records to loguru, tagged ``[logger.name]`` like our own messages."""

    def emit(self, record: logging.LogRecord) -> None:
        level: str | int = record.levelname if record.levelname in _LOGURU_LEVELS else record.levelno
        logger.opt(exception=record.exc_info).log(level, f"[{record.name}] {record.getMessage()}")


def configure_logging(level: str = "INFO", log_file: str | None = None, *, force: bool = False) -> None:
    """Configure loguru sinks and intercept stdlib logging.

    Idempotent: skips if already configured. Use force=True to reconfigure.
    """
    global _configured
    if _configured and not force:
        return
    _configured = True

    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level.upper())

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            path,
            rotation="10 MB",
            retention="7 days",
            level="DEBUG",
            encoding="utf-8",
        )

    logging.root.handlers = [InterceptHandler()]
    logging.root.setLevel(logging.INFO)
