"""
Logging setup for wordwise (loguru).

Library modules only ever do ``from loguru import logger``; entry points call
``setup_logging()`` once to install sinks.
"""

from __future__ import annotations

import sys

from loguru import logger

from config import get_settings

LOG_FORMAT = "<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}"
FILE_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(level: str | None = None, log_file: str | None = None) -> None:
    """
    Replace loguru's default sink with the configured ones.

    Args:
        level: Override for settings.log_level
        log_file: Override for settings.log_file (rotating file sink)
    """
    settings = get_settings()
    level = level or settings.log_level
    log_file = log_file or settings.log_file

    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)

    if log_file:
        logger.add(
            log_file,
            level=level,
            format=FILE_LOG_FORMAT,
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
        )
