"""
Logging setup for the feed aggregator.

Records are written as one JSON object per line. Fields set through
``log_context`` (active tab, preferred language) are attached to every record
emitted while a feed request is being served, including records from the
fetchers it fans out to.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Dict, Optional

SERVICE_NAME = "community-sources"

request_context: ContextVar[Dict[str, Any]] = ContextVar("request_context", default={})


class JSONFormatter(logging.Formatter):
    """Render a record as JSON with service, context and error fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "service": SERVICE_NAME,
            "logger": record.name,
            "message": record.getMessage(),
            "line": record.lineno,
        }

        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        ctx = request_context.get()
        if ctx:
            payload["context"] = ctx

        payload.update(getattr(record, "extra_fields", {}))
        return json.dumps(payload, default=str)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    json_format: bool = True,
    stream=None,
):
    """
    Configure the root logger.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ...)
        log_file: Also write to this file when set
        json_format: JSON lines (True) or plain text (False)
        stream: Console stream; stdout when None
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s [%(name)s:%(lineno)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handlers = [logging.StreamHandler(stream or sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    # aiohttp logs every websocket close at DEBUG
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


class log_context:
    """
    Attach fields to every record logged inside the block.

    Nested blocks add to the outer fields and restore them on exit.
    """

    def __init__(self, **fields):
        self.fields = fields
        self.token = None

    def __enter__(self):
        self.token = request_context.set({**request_context.get(), **self.fields})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        request_context.reset(self.token)


def log_error(logger: logging.Logger, message: str, error: Exception, **fields):
    """Log ``error`` with its type and message as top-level JSON fields."""
    logger.error(message, exc_info=error, extra={
        "extra_fields": {
            "error_type": type(error).__name__,
            "error_message": str(error),
            **fields,
        }
    })
