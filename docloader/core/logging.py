"""
Structured logging configuration.

Provides two formats:
  - **json**  (default): machine-readable structured logs.
  - **console**: human-friendly single-line output.

Besides the standard level names, the loader's own verbosity names are
accepted: ``basic`` (batch commits, truncation, index work), ``detailed``
(per-batch server info, skipped rows) and ``rowlevel`` (every built
document and query).

Usage:
    from docloader.core.logging import setup_logging, get_logger

    setup_logging()                   # call once at startup
    logger = get_logger(__name__)     # per-module logger
    logger.info("Batch committed", extra={"batch_size": 100})
"""

import logging
import sys
from contextvars import ContextVar
from typing import Literal

from pythonjsonlogger import json as json_logger


LOG_FORMAT_CONSOLE = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
)

LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LEVEL_ALIASES = {
    "BASIC": "INFO",
    "DETAILED": "DEBUG",
    "ROWLEVEL": "DEBUG",
    "MINIMAL": "WARNING",
}

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def resolve_level(level: str) -> str:
    """Map a loader verbosity name onto a standard logging level name."""
    name = level.strip().upper()
    return LEVEL_ALIASES.get(name, name)


def setup_logging(
    level: str = "INFO",
    log_format: Literal["json", "console"] = "json",
) -> None:
    """
    Configure the root logger for the entire application.

    Args:
        level:      Logging level (DEBUG, INFO, ... or basic/detailed/rowlevel).
        log_format: 'json' for structured JSON lines, 'console' for human-readable.
    """
    resolved = resolve_level(level)

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved)

    # Remove any pre-existing handlers to avoid duplicate log lines
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(resolved)

    if log_format == "json":
        formatter = _build_json_formatter()
    else:
        formatter = logging.Formatter(
            LOG_FORMAT_CONSOLE, datefmt=LOG_DATE_FORMAT)

    handler.setFormatter(formatter)
    handler.addFilter(_RequestIdFilter())
    root_logger.addHandler(handler)

    # The driver logs every heartbeat and server selection at DEBUG
    for noisy in ("pymongo", "httpcore", "httpx", "uvicorn.access", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    root_logger.info(
        "Logging initialised",
        extra={"log_level": resolved, "log_format": log_format},
    )


def get_logger(name: str) -> logging.Logger:
    """
    Return a named logger.

    Convention: call with ``get_logger(__name__)`` in each module.
    """
    return logging.getLogger(name)


# ─── Internal ─────────────────────────────────────────────────────────


def _build_json_formatter() -> json_logger.JsonFormatter:
    """Build a JSON log formatter with standard fields."""
    return json_logger.JsonFormatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt=LOG_DATE_FORMAT,
        rename_fields={
            "asctime": "timestamp",
            "levelname": "level",
            "name": "logger",
        },
    )


class _RequestIdFilter(logging.Filter):
    """Stamp the current request_id (if any) on every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            request_id = request_id_var.get()
            if request_id is not None:
                record.request_id = request_id  # type: ignore[attr-defined]
        return True
