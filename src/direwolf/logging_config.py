"""
Structured Logging Utilities

Centralizes logging setup for direwolf: masking sensitive fields (credentials,
cookies, tokens) and emitting JSON log records carrying the structured
``extra=`` fields attached by the dispatcher and network hooks.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Dict, Optional

from .settings import LoggingSettings, get_settings

__all__ = ["JSONFormatter", "mask_sensitive_data", "setup_logging"]

_SENSITIVE_KEYS = {
    "authorization",
    "proxy-authorization",
    "cookie",
    "set-cookie",
    "api_key",
    "apikey",
    "token",
    "secret",
    "password",
}

# Attributes every LogRecord carries; anything else came from ``extra=``.
_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def mask_sensitive_data(payload: Dict[str, object]) -> Dict[str, object]:
    """Remove secrets from structured payloads prior to logging.

    Examples:
        >>> mask_sensitive_data({"Cookie": "session=abc", "status": 200})
        {'Cookie': '***masked***', 'status': 200}
    """
    masked: Dict[str, object] = {}
    for key, value in payload.items():
        if key.lower() in _SENSITIVE_KEYS:
            masked[key] = "***masked***"
        elif isinstance(value, dict):
            masked[key] = mask_sensitive_data(value)
        else:
            masked[key] = value
    return masked


class JSONFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record.

    Examples:
        >>> formatter = JSONFormatter()
        >>> isinstance(formatter.format(logging.makeLogRecord({'msg': 'test'})), str)
        True
    """

    def format(self, record: logging.LogRecord) -> str:
        now = datetime.now(timezone.utc)
        log_obj: Dict[str, object] = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and not key.startswith("_"):
                log_obj[key] = value
        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(log_obj), default=str)


def setup_logging(
    config: Optional[LoggingSettings] = None,
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """Configure the ``direwolf`` logger.

    Replaces handlers installed by an earlier call; handlers added by the
    application are left alone.

    Args:
        config: Level and format; defaults to ``get_settings().logging``.
        stream: Destination stream; defaults to ``sys.stderr``.

    Returns:
        The configured ``direwolf`` logger.
    """
    config = config or get_settings().logging

    logger = logging.getLogger("direwolf")
    logger.setLevel(config.level_int())

    for handler in list(logger.handlers):
        if getattr(handler, "_direwolf_managed", False):
            logger.removeHandler(handler)
            handler.close()

    handler = logging.StreamHandler(stream or sys.stderr)
    if config.emit_json_logs:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    handler._direwolf_managed = True  # type: ignore[attr-defined]
    logger.addHandler(handler)

    logger.propagate = True
    return logger
