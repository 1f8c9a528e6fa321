"""Logging helpers for the ticket sync package.

All modules share a single package logger obtained through get_logger(),
so handlers and levels are configured in one place.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import SyncSettings

LOGGER_NAME = "ticket_sync"
DEFAULT_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger, or a child of it.

    Args:
        name: Optional child logger suffix (e.g. "sync.state_machine")

    Returns:
        Logger instance
    """
    if name:
        return logging.getLogger(f"{LOGGER_NAME}.{name}")
    return logging.getLogger(LOGGER_NAME)


def setup_logging(
    level: str | int | None = None,
    stream=None,
    settings: SyncSettings | None = None,
) -> logging.Logger:
    """Configure the package logger with a single stream handler.

    Calling this more than once replaces the previous handler instead of
    stacking duplicates.

    Args:
        level: Log level name or number; wins over settings
        stream: Output stream (defaults to stderr)
        settings: Sync settings whose log_level applies when level is omitted

    Returns:
        The configured package logger
    """
    logger = get_logger()
    if level is None:
        level = settings.log_level if settings is not None else "INFO"
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    for handler in list(logger.handlers):
        if getattr(handler, "_ticket_sync_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    handler._ticket_sync_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


__all__ = ["LOGGER_NAME", "get_logger", "setup_logging"]
