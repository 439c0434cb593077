"""
Logging for the call ingestion service

Every module logs under the "call_ingest" namespace to stdout.
"""

import logging
import sys
from typing import Optional


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Route all records to stdout with one timestamped format

    Args:
        level: Level name; defaults to LOG_LEVEL from settings

    Returns:
        The "call_ingest" package logger
    """
    from .config import settings

    log_level = level or settings.log_level

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Uvicorn reloads call this again
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logger = logging.getLogger("call_ingest")
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, nested under "call_ingest" when it isn't already"""
    if name.startswith("call_ingest"):
        return logging.getLogger(name)
    return logging.getLogger(f"call_ingest.{name}")
