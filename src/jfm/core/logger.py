"""Logging configuration using loguru."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"

# Serilog-style level names accepted in configuration
LEVEL_ALIASES = {
    "VERBOSE": "TRACE",
    "INFORMATION": "INFO",
    "FATAL": "CRITICAL",
}


def setup_logging(level: str = "INFO", log_dir: Optional[Path] = None) -> None:
    """
    Configure loguru sinks.

    Args:
        level: Minimum log level (loguru names, or Verbose/Information/Fatal)
        log_dir: Directory for daily rotated log files (console only if None)
    """
    requested = level.upper()
    level = LEVEL_ALIASES.get(requested, requested)
    try:
        logger.level(level)
        unknown = False
    except ValueError:
        level = "INFO"
        unknown = True

    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True)
    if unknown:
        logger.warning(f"Unknown log level {requested!r} - using INFO")

    if log_dir is None:
        return

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning(f"Cannot create log directory {log_dir}: {e} - logging to console only")
        return

    logger.add(
        log_dir / "migration_{time:YYYY-MM-DD}.log",
        level=level,
        format=FILE_FORMAT,
        rotation="00:00",
        retention="14 days",
        encoding="utf-8",
    )
    logger.debug(f"Logging to {log_dir}")
