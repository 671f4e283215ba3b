"""
Structured JSON logging for the skillset service.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from contextvars import ContextVar, Token
from datetime import UTC, datetime
from logging.handlers import TimedRotatingFileHandler
from typing import Any

SERVICE_LOGGER_NAME = "skillset_service"

_request_context: ContextVar[dict[str, Any] | None] = ContextVar(
    "skillset_request_context", default=None
)

VALID_LOG_LEVELS: frozenset[str] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

_STANDARD_ATTRS: frozenset[str] = frozenset(
    {
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
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


def bind_request_context(**fields: Any) -> Token[dict[str, Any] | None]:
    """
    Attach fields to every record logged while handling the current request.

    Fields accumulate: later calls add to (or override) earlier ones. Pass the
    returned token to reset_request_context() to restore the previous state.
    """
    current = _request_context.get() or {}
    return _request_context.set({**current, **fields})


def reset_request_context(token: Token[dict[str, Any] | None]) -> None:
    """Restore the request context that was active before bind_request_context()."""
    _request_context.reset(token)


def current_request_context() -> dict[str, Any]:
    """Copy of the fields bound for the current request."""
    return dict(_request_context.get() or {})


class JSONFormatter(logging.Formatter):
    """
    Formatter that outputs each record as a single JSON object.

    Records carry the service name, any bound request context under
    ``request`` and caller-supplied ``extra`` fields under ``extra``.
    """

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string."""
        timestamp = datetime.fromtimestamp(record.created, tz=UTC).isoformat(
            timespec="milliseconds"
        )

        log_data: dict[str, Any] = {
            "timestamp": timestamp.replace("+00:00", "Z"),
            "level": record.levelname,
            "service": self._service_name,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request = _request_context.get()
        if request:
            log_data["request"] = request

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = {key: value for key, value in record.__dict__.items() if key not in _STANDARD_ATTRS}
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, default=str)


def setup_logging(
    level: str,
    service_name: str,
    log_directory: str,
    retention_days: int = 14,
) -> logging.Logger:
    """
    Configure structured JSON logging for the service.

    Logs to stdout and to ``<service_name>.log`` in log_directory. The file
    rolls over at midnight UTC and keeps retention_days dated copies.
    Child loggers obtained through get_logger() propagate to this logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Service name stamped on every record
        log_directory: Directory for rotating log files
        retention_days: Number of rolled-over files to keep

    Returns:
        Configured service logger

    Raises:
        ValueError: If level is not a valid log level
    """
    level_upper = level.upper()
    if level_upper not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level}. Must be one of {sorted(VALID_LOG_LEVELS)}")

    numeric_level = getattr(logging, level_upper)

    logger = logging.getLogger(SERVICE_LOGGER_NAME)
    logger.setLevel(numeric_level)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    formatter = JSONFormatter(service_name)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(numeric_level)
    stdout_handler.setFormatter(formatter)
    logger.addHandler(stdout_handler)

    os.makedirs(log_directory, exist_ok=True)
    file_handler = TimedRotatingFileHandler(
        os.path.join(log_directory, f"{service_name}.log"),
        when="midnight",
        backupCount=retention_days,
        utc=True,
        encoding="utf-8",
    )
    file_handler.setLevel(numeric_level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    logger.propagate = False
    logger.debug("Logging configured", extra={"log_directory": log_directory})
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the service namespace.

    Module names already inside the package (``skillset_service.*``) are
    used as-is; anything else is nested under the service logger.
    """
    if name == SERVICE_LOGGER_NAME or name.startswith(f"{SERVICE_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{SERVICE_LOGGER_NAME}.{name}")
