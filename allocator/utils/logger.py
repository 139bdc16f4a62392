"""Logging setup shared by the engine, services and HTTP layer."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from allocator.utils.config import get_settings


_ROOT_LOGGER_NAME = "allocator"
_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """Attach a single stdout handler to the package logger tree.

    Only the ``allocator`` hierarchy is configured so embedding applications
    keep control of their own root logger.
    """

    global _configured
    if _configured:
        return

    resolved_level = (level or get_settings().log_level).upper()
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))

    package_logger = logging.getLogger(_ROOT_LOGGER_NAME)
    package_logger.setLevel(resolved_level)
    package_logger.addHandler(handler)
    package_logger.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the package hierarchy."""
    configure_logging()
    if name != _ROOT_LOGGER_NAME and not name.startswith(f"{_ROOT_LOGGER_NAME}."):
        name = f"{_ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
