"""
Logging configuration for script validation events.

This module provides structured JSON logging for validation requests,
analyzer verdicts and security violations. Script content itself is never
logged beyond the short evidence snippets the analyzers report.
"""

import json
import logging
import os
from logging.handlers import TimedRotatingFileHandler
from typing import Any

VALIDATION_LOGGER_NAME = "k6validator"


class ValidationEventFormatter(logging.Formatter):
    """Custom formatter for validation event logs."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log records with structured data."""
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "event"):
            log_entry["event"] = record.event

        # Analyzer verdict fields
        for field in ["analyzer", "category", "import_module", "status"]:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        for field in ["error_count", "script_size", "duration_ms"]:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        # Request fields
        for field in ["method", "path", "client", "status_code"]:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if hasattr(record, "error"):
            log_entry["error"] = record.error

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


def is_test_environment() -> bool:
    """Return True when running under the test environment."""
    return os.environ.get("K6V_ENV", "").lower() == "test"


def configure_validation_logging(
    log_file: str | None = None,
    log_level: str = "INFO",
    enable_console: bool = True,
) -> logging.Logger:
    """
    Configure logging for validation events.

    Args:
        log_file: Path to log file for validation events (optional)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_console: Whether to also log to console. Ignored (treated as
            False) when K6V_ENV=test.

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(VALIDATION_LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.propagate = False

    logger.handlers.clear()

    formatter = ValidationEventFormatter()

    if log_file:
        file_handler = TimedRotatingFileHandler(
            log_file,
            when="H",
            interval=1,
            backupCount=168,  # 7 days of hourly files
            encoding="utf-8",
            utc=False,
        )
        file_handler.suffix = "%Y%m%d_%H%M%S.log"
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if enable_console and not is_test_environment():
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    return logger


def get_validation_logger(name: str | None = None) -> logging.Logger:
    """Get the package logger, or a named child of it."""
    if name:
        return logging.getLogger(f"{VALIDATION_LOGGER_NAME}.{name}")
    return logging.getLogger(VALIDATION_LOGGER_NAME)
