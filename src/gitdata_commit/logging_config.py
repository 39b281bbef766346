"""Log output for the CLI and library.

Commit runs attach ``branch``, ``state``, ``sha`` and ``duration_ms`` to their
records through ``extra``; the JSON formatter lifts them to top-level keys so
a run can be followed in aggregated logs.
"""

import json
import logging
import sys
from enum import Enum

CONTEXT_FIELDS = ("branch", "state", "sha", "duration_ms")

PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class SafeStreamHandler(logging.StreamHandler):
    """
    Stream handler that drops records once its stream has been closed.

    CliRunner and interpreter shutdown both close stderr while aiohttp may
    still be logging connector cleanup.
    """

    def emit(self, record):
        if getattr(self.stream, "closed", False):
            return
        super().emit(record)

    def handleError(self, record):
        error = sys.exc_info()[1]
        if isinstance(error, (ValueError, OSError)) and "closed" in str(error).lower():
            return
        super().handleError(record)


class StructuredLogFormatter(logging.Formatter):
    """
    One JSON object per record, carrying the commit-run context fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context(record))
        if record.exc_info:
            payload["error_type"] = record.exc_info[0].__name__
            payload["exception"] = self.formatException(record.exc_info)
        elif record.exc_text:
            payload["exception"] = record.exc_text
        return json.dumps(payload, ensure_ascii=False, default=str)


def _context(record: logging.LogRecord) -> dict:
    context = {}
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if isinstance(value, Enum):
            value = value.value
        if value is not None:
            context[name] = value
    return context


def verbosity_to_level(verbose: int) -> int:
    if verbose <= 0:
        return logging.WARNING
    if verbose == 1:
        return logging.INFO
    return logging.DEBUG


def configure_logging(log_level="INFO", json_output: bool = False) -> None:
    """
    Install a single stderr handler on the root logger, plain text or JSON.
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    handler = SafeStreamHandler(sys.stderr)
    if json_output:
        handler.setFormatter(StructuredLogFormatter())
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    root_logger.addHandler(handler)
    if isinstance(log_level, str):
        log_level = log_level.upper()
    root_logger.setLevel(log_level)
    logging.getLogger("asyncio").setLevel("WARNING")
    logging.getLogger("aiohttp").setLevel("WARNING")
