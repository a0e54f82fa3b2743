# catalog/logging_config.py
"""Logging setup for the catalog service.

Everything logs under the ``catalog`` namespace; ``setup_logging`` is called
once by the app entry point, library modules only call ``get_logger``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

__all__ = ["setup_logging", "get_logger", "ROOT_LOGGER"]

ROOT_LOGGER = "catalog"


class ColoredConsoleHandler(logging.StreamHandler):
    """Console handler that colours the level name when attached to a TTY."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if hasattr(self.stream, "isatty") and self.stream.isatty():
            color = self.COLORS.get(record.levelname, "")
            if color:
                text = text.replace(record.levelname, f"{color}{record.levelname}{self.RESET}", 1)
        return text


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure the ``catalog`` logger with a single console handler.

    Args:
        level: Level name (``"DEBUG"``, ``"INFO"`` ...). Defaults to ``LOG_LEVEL`` or INFO.

    Returns:
        The configured namespace logger.
    """
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    logger.handlers.clear()

    handler = ColoredConsoleHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S")
    )
    logger.addHandler(handler)
    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Return ``catalog.<name>`` (or the namespace logger itself)."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
