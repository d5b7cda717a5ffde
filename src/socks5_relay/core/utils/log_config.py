"""Logging configuration for the proxy server.

This module provides centralized logging configuration using Loguru.
It sets up logging to the console and, when configured, to a log file
with rotation, retention and compression.
"""

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | "
    "{level: <8} | "
    "{name}:{function}:{line} - "
    "{message}"
)


def configure_logging(log_file: Path | None = None, *, debug: bool = False) -> None:
    """Replace the default handler with console and optional file sinks.

    Args:
        log_file: Path of the log file, or None for console only
        debug: Log DEBUG records instead of INFO and up

    Raises:
        OSError: If the log file cannot be opened
    """
    level = "DEBUG" if debug else "INFO"
    logger.remove()  # Remove default handler

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=level,
        backtrace=debug,
        diagnose=debug,
    )

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation="10 MB",
            retention="1 week",
            compression="zip",
            format=FILE_FORMAT,
            level=level,
            backtrace=True,
            diagnose=False,
        )


__all__ = ["configure_logging", "logger"]
