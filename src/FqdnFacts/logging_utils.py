"""
Structured Logging Utilities

Matching and fact assembly emit their trace lines through module loggers under
the ``FqdnFacts`` namespace. This module attaches a single managed stderr
handler to that namespace, rendering either plain console lines or JSON
records that carry the ``stage``, ``handler`` and ``fqdn`` context fields
passed through ``extra``.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional, TextIO

from .settings import FqdnFactsSettings, LogFormat, get_settings

__all__ = ["JSONFormatter", "configure_logging", "LOGGER_NAME"]

LOGGER_NAME = "FqdnFacts"
_CONTEXT_FIELDS = ("stage", "handler", "fqdn", "component", "fact")


class JSONFormatter(logging.Formatter):
    """Formatter emitting JSON structured logs.

    Examples:
        >>> formatter = JSONFormatter()
        >>> isinstance(formatter.format(logging.makeLogRecord({'msg': 'test'})), str)
        True
    """

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now(timezone.utc)
        log_obj = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in _CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_obj[field] = value
        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_obj, default=str)


def configure_logging(
    settings: Optional[FqdnFactsSettings] = None,
    *,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Configure the ``FqdnFacts`` logger from settings.

    Args:
        settings: Settings to apply; defaults to :func:`get_settings`.
        stream: Diagnostic stream; defaults to ``sys.stderr``.

    Returns:
        The configured package logger.

    Examples:
        >>> logger = configure_logging(FqdnFactsSettings(debug=True))
        >>> logger.level == logging.DEBUG
        True
    """
    settings = settings or get_settings()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, settings.effective_level, logging.WARNING))

    for handler in list(logger.handlers):
        if getattr(handler, "_fqdn_facts_managed", False):
            logger.removeHandler(handler)
            handler.close()

    handler = logging.StreamHandler(stream or sys.stderr)
    if settings.log_format is LogFormat.JSON:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    handler._fqdn_facts_managed = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.propagate = True
    return logger
