"""JSON logging for the docvec service.

Index and query events are logged under dotted event names such as
``index.built`` or ``index.degraded``; structured fields travel through
``extra=context(...)`` and are emitted under the ``context`` key.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import orjson

LEVEL_ENV = "DOCVEC_LOG_LEVEL"
FORMAT_ENV = "DOCVEC_LOG_FORMAT"
_CONTEXT_ATTR = "docvec_context"


class JsonFormatter(logging.Formatter):
    """One JSON object per line with UTC millisecond timestamps."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "timestamp": stamp.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        fields = getattr(record, _CONTEXT_ATTR, None)
        if fields:
            payload["context"] = fields
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str, option=orjson.OPT_NON_STR_KEYS).decode("utf-8")


def configure_logging(level: str | int | None = None, use_json: bool | None = None) -> None:
    """Install a single stdout handler on the root logger.

    ``level`` defaults to ``DOCVEC_LOG_LEVEL`` (INFO); ``use_json`` defaults to
    true unless ``DOCVEC_LOG_FORMAT=text``.
    """
    if level is None:
        level = os.environ.get(LEVEL_ENV, "INFO").upper()
    if use_json is None:
        use_json = os.environ.get(FORMAT_ENV, "json").lower() != "text"
    logging.captureWarnings(True)
    handler = logging.StreamHandler(sys.stdout)
    if use_json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]


def get_logger(name: str = "docvec") -> logging.Logger:
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


def context(**fields: Any) -> dict[str, Any]:
    """Build the ``extra=`` mapping for a structured log event."""
    return {_CONTEXT_ATTR: fields}


__all__ = ["JsonFormatter", "configure_logging", "context", "get_logger"]
