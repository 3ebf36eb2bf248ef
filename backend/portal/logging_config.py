"""
JSON log output for the portal.

Each record becomes one line of JSON on stdout:

    {"timestamp": "...Z", "level": "INFO", "channel": "storage",
     "message": "...", "context": {"request_id": "...", ...}, "extra": {...}}

Channels are child loggers of ``portal`` (portal.http, portal.auth,
portal.db, portal.storage, portal.lifecycle). ``context`` holds the ids a
record is about; ``extra`` holds measurements and details.
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone

from portal.config import LOG_LEVEL

ROOT_LOGGER = "portal"
LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Bound by the HTTP middleware for the lifetime of one request
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def _channel_of(record: logging.LogRecord) -> str:
    if record.name.startswith(ROOT_LOGGER + "."):
        return record.name[len(ROOT_LOGGER) + 1:]
    return getattr(record, "channel", None) or record.name


class StructuredJsonFormatter(logging.Formatter):
    """Render a record, its context ids and extra data as a JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        context = {"request_id": request_id_var.get()}
        context.update(getattr(record, "context", None) or {})
        entry = {
            "timestamp": stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "channel": _channel_of(record),
            "message": record.getMessage(),
            "context": context,
            "extra": getattr(record, "extra_data", None) or {},
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: str = None) -> logging.Logger:
    """Send every log record through one stdout handler using the JSON formatter."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredJsonFormatter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(LEVELS.get((level or LOG_LEVEL).upper(), logging.INFO))
    return root


def get_logger(channel: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{channel}")


def log_with_context(logger: logging.Logger, level: str, message: str,
                     context: dict = None, extra_data: dict = None):
    """
    Log ``message`` on ``logger`` at ``level`` (a level name such as "WARNING").

    ``context`` carries identifiers (principal_id, application_id, ...) and
    is merged with the current request id; ``extra_data`` carries anything
    else worth recording.
    """
    logger.log(LEVELS.get(level.upper(), logging.INFO),
               message, extra={"context": context or {}, "extra_data": extra_data or {}})


def generate_request_id() -> str:
    return str(uuid.uuid4())
