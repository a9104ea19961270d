"""
Logging setup for the AG-UI server.

Usage:
    from agui_stream_protocol.logging_config import configure_logging, add_file_sink
    configure_logging()
    log_file = add_file_sink("logs")

Environment Variables:
    LOG_LEVEL: console verbosity (default: INFO)
        - DEBUG: every emitted AG-UI event and hook call
        - INFO: run lifecycle
        - WARNING: dropped messages, skipped tool results, delivery losses
        - ERROR: failed runs only
    EVENT_RECORDER_SESSION_ID: reused as the log file name when set, so a
        server log lines up with its event capture

The file sink is always DEBUG.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

from loguru import logger


VALID_LOG_LEVELS: set[str] = {"DEBUG", "INFO", "WARNING", "ERROR"}
DEFAULT_LOG_LEVEL = "INFO"

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - {message}"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"

JST = timezone(timedelta(hours=9))


def get_log_level() -> str:
    """LOG_LEVEL, upper-cased; INFO when unset or not one of VALID_LOG_LEVELS."""
    level = os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
    return level if level in VALID_LOG_LEVELS else DEFAULT_LOG_LEVEL


def configure_logging() -> None:
    """Replace loguru's default stderr sink with one honoring LOG_LEVEL."""
    level = get_log_level()

    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True)

    logger.debug(f"Logging configured: console level={level}")


def add_file_sink(log_dir: str | Path = "logs") -> Path:
    """
    Add a rotating DEBUG file sink.

    Returns:
        Path of the log file: server_{EVENT_RECORDER_SESSION_ID or JST timestamp}.log
    """
    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    suffix = os.getenv("EVENT_RECORDER_SESSION_ID") or datetime.now(JST).strftime("%Y%m%d_%H%M%S")
    log_file = directory / f"server_{suffix}.log"
    logger.add(log_file, rotation="100 MB", retention="7 days", level="DEBUG", format=FILE_FORMAT)
    return log_file
