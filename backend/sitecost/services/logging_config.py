"""
Structured logging for SiteCost.

JSON lines in production (one object per record), plain text locally with
``LOG_FORMAT=text``. Request and rollup context passed through ``extra=``
is copied onto the record for the fields below.
"""
import json
import logging
import sys
from datetime import datetime, timezone

CONTEXT_FIELDS = (
    "request_id", "http_method", "http_path", "http_status", "duration_ms",
    "degraded", "function", "project_id", "task_id",
)

QUIET_LOGGERS = ("uvicorn.access", "httpcore", "httpx", "sqlalchemy.engine", "asyncio")

TEXT_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s%(context)s"


def _context(record: logging.LogRecord) -> dict:
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, timestamped from the record itself."""

    def format(self, record):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        entry.update(_context(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines with any request/rollup context appended as key=value."""

    def __init__(self):
        super().__init__(TEXT_FORMAT)

    def format(self, record):
        context = _context(record)
        record.context = (" " + " ".join(f"{k}={v}" for k, v in context.items())) if context else ""
        return super().format(record)


def setup_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Install a single stdout handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else TextFormatter())
    root.handlers = [handler]

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
