"""
Loguru sink configuration shared by the API and CLI entry points.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from config import Settings

CONSOLE_FORMAT = "<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {name}:{line} | {message}"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"


def configure_logging(settings: Settings, level: str | None = None) -> None:
    """
    Replace loguru's default sink.

    Args:
        settings: Application settings (log_level, log_file)
        level: Override for the console level (the CLI uses WARNING)
    """
    logger.remove()
    logger.add(sys.stderr, level=level or settings.log_level, format=CONSOLE_FORMAT)

    if settings.log_file:
        logger.add(
            settings.log_file,
            level=settings.log_level,
            format=FILE_FORMAT,
            rotation="10 MB",
            retention=5,
        )
