"""Logging helpers for the AWS VM plugin."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from aws_vm_plugin.config import load_settings

_logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# One INFO line per Query API call otherwise.
_HTTP_CLIENT_LOGGERS = ("httpx", "httpcore")


def _level(name: str, default: int) -> int:
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else default


def _handler(handler: logging.Handler) -> logging.Handler:
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
    return handler


def configure_logging() -> None:
    """Configure process-wide logging from the loaded settings.

    Replaces the root handlers. Only a standalone host calls it; the plugin
    itself only logs to module loggers and leaves the root logger to its host.
    """
    settings = load_settings().logging
    handlers: list[logging.Handler] = [_handler(logging.StreamHandler(sys.stderr))]

    if settings.file:
        try:
            Path(settings.file).parent.mkdir(parents=True, exist_ok=True)
            handlers.append(_handler(logging.FileHandler(settings.file)))
        except OSError as exc:
            _logger.warning("Failed to open log file %s: %s", settings.file, exc)

    logging.basicConfig(level=_level(settings.level, logging.INFO), handlers=handlers, force=True)

    http_level = _level(settings.http_level, logging.WARNING)
    for name in _HTTP_CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(http_level)
