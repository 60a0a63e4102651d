"""Structured logging utilities."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from matching_engine.utils.config import get_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_configured_level: Optional[str] = None


def configure_logging(level: Optional[str] = None, *, force: bool = False) -> str:
    """Configure process-wide logging and return the active level name.

    Match and dispatch lines share one pipe-separated format so a job can be
    followed end to end by grepping ``request_id``. Later calls are no-ops
    unless ``force`` is set, which the server launcher uses to apply the
    level from settings before uvicorn starts.
    """

    global _configured_level
    if _configured_level is not None and not force:
        return _configured_level

    resolved_level = (level or get_settings().log_level).upper()
    logging.basicConfig(
        level=resolved_level,
        format=LOG_FORMAT,
        stream=sys.stdout,
        force=force,
    )
    logging.getLogger("asyncio").setLevel(max(logging.WARNING, logging.getLevelName(resolved_level)))
    _configured_level = resolved_level
    return resolved_level


def get_logger(name: str) -> logging.Logger:
    """Return a configured logger for the requested module."""
    configure_logging()
    return logging.getLogger(name)
