"""
Structured Logging Utilities

This module centralizes logging setup for the release manager.  Records carry
their structured ``extra`` payload (``stage``, ``tag``, ``path``...) which the
JSON formatter emits verbatim after masking credentials; the console formatter
prints the message alone.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Dict, Optional, TextIO

from .settings import LoggingSettings

LOGGER_NAME = "ProtonUp.ReleaseManager"

_RESERVED_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}
_SENSITIVE_KEYS = {"authorization", "api_key", "apikey", "token", "github_token", "secret", "password"}


def mask_sensitive_data(payload: Dict[str, object]) -> Dict[str, object]:
    """Remove secrets from structured payloads prior to logging.

    Examples:
        >>> mask_sensitive_data({"token": "secret", "stage": "download"})
        {'token': '***masked***', 'stage': 'download'}
    """
    masked: Dict[str, object] = {}
    for key, value in payload.items():
        if key.lower() in _SENSITIVE_KEYS:
            masked[key] = "***masked***"
        elif isinstance(value, str) and value.lower().startswith("bearer "):
            masked[key] = "***masked***"
        else:
            masked[key] = value
    return masked


def _extra_fields(record: logging.LogRecord) -> Dict[str, object]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


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
        log_obj.update(_extra_fields(record))
        if record.exc_info:
            log_obj["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(log_obj), default=str)


def setup_logging(
    settings: Optional[LoggingSettings] = None,
    *,
    level: Optional[str] = None,
    emit_json: Optional[bool] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Configure the package logger; repeated calls replace earlier handlers.

    Args:
        settings: Logging configuration; defaults to :class:`LoggingSettings`.
        level: Level name overriding ``settings.level``.
        emit_json: Overrides ``settings.emit_json_logs``.
        stream: Destination stream, ``sys.stderr`` by default.

    Returns:
        The ``ProtonUp.ReleaseManager`` logger.

    Examples:
        >>> logger = setup_logging(LoggingSettings(level="INFO"))
        >>> logger.name
        'ProtonUp.ReleaseManager'
    """
    settings = settings or LoggingSettings()
    if level is not None:
        settings = settings.model_copy(update={"level": LoggingSettings(level=level).level})
    use_json = settings.emit_json_logs if emit_json is None else emit_json

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(settings.level_int())

    for handler in list(logger.handlers):
        if getattr(handler, "_pup_managed", False):
            logger.removeHandler(handler)
            handler.close()

    handler = logging.StreamHandler(stream or sys.stderr)
    if use_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    handler._pup_managed = True  # type: ignore[attr-defined]
    logger.addHandler(handler)

    logger.propagate = True
    return logger


__all__ = ["LOGGER_NAME", "setup_logging", "mask_sensitive_data", "JSONFormatter"]
