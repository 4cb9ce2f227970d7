"""
Logging configuration for the CareFinder API
Structured (JSON) logs on stdout for production, plain text for local runs
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional


# LogRecord attributes copied into the JSON payload when passed via ``extra``
_EXTRA_FIELDS = (
    "request_id",
    "lat",
    "lng",
    "tier",
    "provider_kind",
    "collaborator",
    "error_type",
    "duration_ms",
    "operation",
    "count",
    "radius_km",
    "source",
)


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in _EXTRA_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", json_format: bool = True) -> None:
    """
    Set up logging configuration for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Whether to use JSON formatting for structured logs
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if json_format:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logging.getLogger("carefinder").setLevel(numeric_level)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance namespaced under ``carefinder``.

    Args:
        name: Logger name (typically __name__)
    """
    if name.startswith("carefinder"):
        return logging.getLogger(name)
    return logging.getLogger(f"carefinder.{name}")


def log_collaborator_failure(
    logger: logging.Logger,
    collaborator: str,
    error: BaseException,
    request_id: Optional[str] = None,
    **kwargs,
) -> None:
    """
    Log a recovered collaborator error (timeout or failure) at WARNING.

    Args:
        logger: Logger instance
        collaborator: Name of the external collaborator
        error: The exception that was swallowed
        request_id: Optional request ID for tracing
        **kwargs: Additional fields to log
    """
    extra = {
        "collaborator": collaborator,
        "error_type": type(error).__name__,
        **kwargs,
    }
    if request_id:
        extra["request_id"] = request_id

    logger.warning(f"{collaborator} unavailable, degrading: {error}", extra=extra)


def log_performance(
    logger: logging.Logger,
    operation: str,
    duration_ms: float,
    request_id: Optional[str] = None,
    **kwargs,
) -> None:
    extra = {
        "operation": operation,
        "duration_ms": round(duration_ms, 1),
        **kwargs,
    }
    if request_id:
        extra["request_id"] = request_id

    logger.info(f"Performance: {operation} took {duration_ms:.0f}ms", extra=extra)
