"""
Signalbox Logging.

Two outputs share one logger tree rooted at ``signalbox``:
- Console output for humans watching a running application
- A rotating JSONL file (one JSON object per line) for log shippers and agents

Collectors log through component loggers (``Usage``, ``Errors``,
``Performance``, ``Delivery``) so every line carries the component that
produced it. Structured fields travel in the ``context`` extra.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

# =============================================================================
# Terminal Colors (respects NO_COLOR)
# =============================================================================

_NO_COLOR = bool(os.environ.get("NO_COLOR")) or not sys.stdout.isatty()


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "" if _NO_COLOR else "\033[0m"
    DIM = "" if _NO_COLOR else "\033[2m"

    # Log levels
    DEBUG = "" if _NO_COLOR else "\033[36m"  # Cyan
    INFO = "" if _NO_COLOR else "\033[32m"  # Green
    WARNING = "" if _NO_COLOR else "\033[33m"  # Yellow
    ERROR = "" if _NO_COLOR else "\033[31m"  # Red
    CRITICAL = "" if _NO_COLOR else "\033[35m"  # Magenta

    # Components
    USAGE = "" if _NO_COLOR else "\033[34m"  # Blue
    ERRORS = "" if _NO_COLOR else "\033[31m"  # Red
    PERFORMANCE = "" if _NO_COLOR else "\033[36m"  # Cyan
    DELIVERY = "" if _NO_COLOR else "\033[35m"  # Magenta


# =============================================================================
# JSONL Formatter
# =============================================================================


class JSONLFormatter(logging.Formatter):
    """
    Formats log records as JSON Lines.

    Each entry is a single JSON object containing:
    - timestamp: ISO 8601, UTC
    - level: DEBUG, INFO, WARNING, ERROR, CRITICAL
    - component: Usage, Errors, Performance, Delivery, Signalbox
    - message: The log message
    - context: Additional structured data (optional)
    - source: file/line/function for WARNING and above
    - exception: type and message when exc_info is attached

    Example output:
    {"timestamp":"2024-01-15T10:30:45.123000Z","level":"WARNING","component":"Delivery","message":"Flush failed","context":{"store":"error_logs","count":12}}
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, UTC)
        entry: dict[str, Any] = {
            "timestamp": created.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "component": getattr(record, "component", "Signalbox"),
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context

        if record.levelno >= logging.WARNING:
            source_info: dict[str, Any] = {}
            if record.pathname:
                source_info["file"] = record.pathname
            if record.lineno:
                source_info["line"] = record.lineno
            if record.funcName and record.funcName != "<module>":
                source_info["function"] = record.funcName
            if source_info:
                entry["source"] = source_info

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DEBUG,
        logging.INFO: Colors.INFO,
        logging.WARNING: Colors.WARNING,
        logging.ERROR: Colors.ERROR,
        logging.CRITICAL: Colors.CRITICAL,
    }

    def format(self, record: logging.LogRecord) -> str:
        component = getattr(record, "component", "Signalbox")
        component_color = getattr(record, "component_color", "")
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level_color = self.LEVEL_COLORS.get(record.levelno, "")

        if _NO_COLOR:
            prefix = f"[{timestamp}] [{component}]"
        else:
            prefix = (
                f"{Colors.DIM}{timestamp}{Colors.RESET} "
                f"{component_color}[{component}]{Colors.RESET}"
            )

        if record.levelno != logging.INFO:
            level_name = record.levelname
            if not _NO_COLOR:
                level_name = f"{level_color}{level_name}{Colors.RESET}"
            prefix = f"{prefix} {level_name}:"

        return f"{prefix} {record.getMessage()}"


# =============================================================================
# Logger Setup
# =============================================================================


_loggers: dict[str, logging.Logger] = {}

LOG_FILE_NAME = "signalbox.log"


def setup_logging(
    log_dir: Path | str | None = ".signalbox/logs",
    level: int | str = logging.INFO,
    max_bytes: int = 5 * 1024 * 1024,  # 5MB
    backup_count: int = 3,
) -> Path | None:
    """
    Initialize console and JSONL file logging for the ``signalbox`` tree.

    Args:
        log_dir: Directory for the JSONL log file; ``None`` for console only
        level: Minimum log level (int or level name)
        max_bytes: Max size per log file before rotation
        backup_count: Number of rotated files to keep

    Returns:
        Path to the log directory, or None when file logging is disabled
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root_logger = logging.getLogger("signalbox")
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ConsoleFormatter())
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_dir is None:
        return None

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(JSONLFormatter())
    file_handler.setLevel(level)
    root_logger.addHandler(file_handler)

    root_logger.info(
        "Signalbox logging initialized",
        extra={
            "component": "Signalbox",
            "context": {"log_format": "jsonl", "log_file": str(log_file)},
        },
    )
    return log_dir


def get_logger(component: str, color: str = "") -> logging.Logger:
    """
    Get a logger for a specific component.

    Args:
        component: Component name (e.g., "Usage", "Errors")
        color: ANSI color code for the component tag

    Returns:
        Configured logger instance
    """
    if component in _loggers:
        return _loggers[component]

    logger = logging.getLogger(f"signalbox.{component.lower().replace(' ', '_')}")

    class ComponentFilter(logging.Filter):
        def filter(self, record: logging.LogRecord) -> bool:
            if not hasattr(record, "component"):
                record.component = component
            if not hasattr(record, "component_color"):
                record.component_color = color
            return True

    logger.addFilter(ComponentFilter())
    _loggers[component] = logger
    return logger


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    context: dict[str, Any] | None = None,
    exc_info: bool = False,
    **kwargs: Any,
) -> None:
    """
    Log a message with structured context data.

    Args:
        logger: Logger instance
        level: Logging level (logging.INFO, logging.ERROR, etc.)
        message: Human-readable message
        context: Structured context data (included in JSONL output)
        exc_info: Attach the active exception
        **kwargs: Additional context items
    """
    extra = {"context": {**(context or {}), **kwargs}} if (context or kwargs) else {}
    logger.log(level, message, extra=extra, exc_info=exc_info)


# =============================================================================
# Component Loggers
# =============================================================================


def get_usage_logger() -> logging.Logger:
    """Logger for the usage-event collector."""
    return get_logger("Usage", Colors.USAGE)


def get_errors_logger() -> logging.Logger:
    """Logger for the error collector."""
    return get_logger("Errors", Colors.ERRORS)


def get_performance_logger() -> logging.Logger:
    """Logger for the performance collector."""
    return get_logger("Performance", Colors.PERFORMANCE)


def get_delivery_logger() -> logging.Logger:
    """Logger for flush and sink delivery."""
    return get_logger("Delivery", Colors.DELIVERY)
