"""Logging configuration for the mandate processor.

Provides:
- Plain text or structured JSON output
- Console handler plus optional file handler
- Pass / mandate context fields attached to every record of a pass
"""
from __future__ import annotations

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

# Context variables for pass tracking
pass_id_var: ContextVar[Optional[str]] = ContextVar("pass_id", default=None)
mandate_var: ContextVar[Optional[str]] = ContextVar("mandate", default=None)

TEXT_FORMAT = "%(asctime)s %(levelname)s: %(pass_tag)s%(message)s"

_RESERVED_ATTRS = frozenset(
    (
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
        "pass_id",
        "mandate",
        "pass_tag",
    )
)


class PassContextFilter(logging.Filter):
    """Logging filter that adds pass context to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.pass_id = pass_id_var.get()
        record.mandate = mandate_var.get()
        record.pass_tag = f"[{record.pass_id}] " if record.pass_id else ""
        return True


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if getattr(record, "pass_id", None):
            log_data["pass_id"] = record.pass_id
        if getattr(record, "mandate", None):
            log_data["mandate"] = record.mandate

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure logging for the processor.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON structured logging instead of plain text
        log_file: Optional file path for logging output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(PassContextFilter())
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(PassContextFilter())
        root_logger.addHandler(file_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def generate_pass_id() -> str:
    """Generate a new pass ID."""
    return f"pass_{uuid.uuid4().hex[:12]}"


class LogContext:
    """Context manager for temporary logging context."""

    def __init__(
        self,
        pass_id: Optional[str] = None,
        mandate: Optional[str] = None,
    ):
        self.pass_id = pass_id
        self.mandate = mandate
        self.previous_context: dict[str, Optional[str]] = {}

    def __enter__(self) -> "LogContext":
        self.previous_context = {
            "pass_id": pass_id_var.get(),
            "mandate": mandate_var.get(),
        }
        if self.pass_id:
            pass_id_var.set(self.pass_id)
        if self.mandate:
            mandate_var.set(self.mandate)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        pass_id_var.set(self.previous_context["pass_id"])
        mandate_var.set(self.previous_context["mandate"])
