"""Structured logging configuration for flatdav.

Each DAV request is logged exactly once, by the access-log middleware in
``flatdav.server``; uvicorn's own access log is switched off so requests
do not appear twice.
"""

import json
import logging
import sys
from datetime import datetime, timezone

# Request attributes attached via ``extra=`` by the access-log middleware.
_EXTRA_FIELDS = ("method", "path", "status", "duration_ms", "request_id", "user")

# Client libraries that log every HTTP call or SQL statement at INFO/DEBUG.
_CHATTY_LOGGERS = ("aiobotocore", "botocore", "urllib3", "aiosqlite")

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per line.

    Fields: timestamp, level, logger, message, exception (if any), and
    whichever request attributes the record carries.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(
            (key, getattr(record, key))
            for key in _EXTRA_FIELDS
            if getattr(record, key, None) is not None
        )
        return json.dumps(entry, default=str)


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Install a single stderr handler on the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Unknown names fall back to INFO.
        fmt: 'text' for human-readable lines, 'json' for structured output.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(numeric_level)

    for existing in root.handlers[:]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter() if fmt == "json" else logging.Formatter(_TEXT_FORMAT))
    root.addHandler(handler)

    # Library chatter only surfaces when flatdav itself runs at DEBUG
    library_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    logging.getLogger("uvicorn.access").disabled = True
