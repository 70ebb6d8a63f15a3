"""
FeedTape Logging Configuration
==============================

Structured logging setup with console and rotating-file output. Pipeline
components log through context adapters that carry the feed and entry they
are working on.
"""

import asyncio
import logging
import logging.handlers
import sys
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, Optional

# LogRecord attributes that are not user-supplied context
_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", "taskName"}


class StructuredFormatter(logging.Formatter):
    """JSON formatter, one object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = {
            k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRIBUTES
        }
        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Colored console formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset = self.COLORS["RESET"]
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        feed_id = getattr(record, "feed_id", None)
        scope = f"[{feed_id}] " if feed_id else ""

        formatted = (
            f"{color}[{timestamp}] {record.levelname:8}{reset} "
            f"{record.name} - {scope}{record.getMessage()}"
        )

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


def setup_logger(
    name: str = "feedtape",
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    structured: bool = False,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """Set up logger with appropriate handlers and formatting.

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (optional)
        console: Whether to log to console
        structured: Whether to use structured JSON logging on the console
        max_file_size: Maximum log file size in bytes
        backup_count: Number of backup log files to keep

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(
            StructuredFormatter() if structured else ColoredConsoleFormatter()
        )
        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_file_size, backupCount=backup_count, encoding="utf-8"
        )
        # Files are always JSON so they can be shipped as-is
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    return logger


class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that merges fixed context into every record."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple:
        if "extra" in kwargs:
            kwargs["extra"] = {**self.extra, **kwargs["extra"]}
        else:
            kwargs["extra"] = dict(self.extra)
        return msg, kwargs

    def bind(self, **context: Any) -> "LoggerAdapter":
        """Return a child adapter with additional context."""
        merged = dict(self.extra)
        merged.update({k: v for k, v in context.items() if v is not None})
        return LoggerAdapter(self.logger, merged)


def get_logger_for_component(
    component_name: str,
    feed_id: Optional[str] = None,
    entry_id: Optional[str] = None,
) -> LoggerAdapter:
    """Get a logger adapter with component-specific context.

    Args:
        component_name: Name of the component (e.g. 'pipeline', 'content_cleaner')
        feed_id: Feed being processed (optional)
        entry_id: Entry link being processed (optional)

    Returns:
        Logger adapter with context
    """
    base_logger = logging.getLogger(f"feedtape.{component_name}")

    extra_context: Dict[str, Any] = {"component": component_name}
    if feed_id:
        extra_context["feed_id"] = feed_id
    if entry_id:
        extra_context["entry_id"] = entry_id

    return LoggerAdapter(base_logger, extra_context)


def configure_application_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True,
    structured_logging: bool = False,
) -> None:
    """Configure application-wide logging settings."""
    setup_logger(
        name="feedtape",
        level=log_level,
        log_file=log_file,
        console=enable_console,
        structured=structured_logging,
    )

    # Third-party noise
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("feedparser").setLevel(logging.WARNING)


class PerformanceLogger:
    """Context manager that logs how long an operation took."""

    def __init__(self, logger: logging.LoggerAdapter, operation: str, **kwargs):
        self.logger = logger
        self.operation = operation
        self.context = kwargs
        self.start_time: Optional[datetime] = None
        self.duration: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self.start_time = datetime.now(timezone.utc)
        self.logger.debug(f"Starting {self.operation}", extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self.start_time:
            return

        self.duration = (datetime.now(timezone.utc) - self.start_time).total_seconds()
        context = {
            **self.context,
            "duration_seconds": self.duration,
            "success": exc_type is None,
        }

        if exc_type is not None and issubclass(exc_type, asyncio.CancelledError):
            self.logger.info(
                f"Cancelled {self.operation} after {self.duration:.3f}s", extra=context
            )
        elif exc_type:
            self.logger.error(
                f"Failed {self.operation} in {self.duration:.3f}s", extra=context
            )
        else:
            self.logger.info(
                f"Completed {self.operation} in {self.duration:.3f}s", extra=context
            )
