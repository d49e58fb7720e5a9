"""
Structured logging configuration.
JSON logs in production, human-readable in development.

Resolver log calls pass `site` and `strategy` through `extra=`, so in
production every resolution line can be filtered by tenant and by the
strategy that answered.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import json_log_formatter

from message_geo.config import Settings, get_settings

SERVICE_NAME = "message_geo"


class ResolutionJSONFormatter(json_log_formatter.JSONFormatter):
    """JSONFormatter that also stamps service, level and logger on every line."""

    def json_record(self, message: str, extra: dict, record: logging.LogRecord) -> dict:
        extra = super().json_record(message, extra, record)
        extra.setdefault("service", SERVICE_NAME)
        extra["level"] = record.levelname
        extra["logger"] = record.name
        return extra


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure logging based on environment."""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.env == "production":
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(ResolutionJSONFormatter())

        root = logging.getLogger()
        root.setLevel(level)
        root.handlers = [handler]
    else:
        _setup_basic_logging(level)

    # LOG_LEVEL is ours; a caller's root config may be stricter or looser
    logging.getLogger(SERVICE_NAME).setLevel(level)
    _quiet_third_party()


def _setup_basic_logging(level: int) -> None:
    """Human-readable logging for development."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def _quiet_third_party() -> None:
    # Settings-service and store clients log every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)
