"""
Logging configuration for HostDiag.

Console logging goes to stderr; an optional rotating file log keeps full
detail (including tracebacks for unexpected probe failures).
"""

import logging
import sys
import threading
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any


class StructuredFormatter(logging.Formatter):
    """Pipe-separated formatter for easier log parsing."""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, 'module_name'):
            record.module_name = record.module
        if not hasattr(record, 'function_name'):
            record.function_name = record.funcName
        return super().format(record)


def default_log_path() -> Path:
    return Path.home() / ".hostdiag" / "logs" / "hostdiag.log"


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    max_bytes: int = 10485760,  # 10MB
    backup_count: int = 5,
    enable_console: bool = True,
    enable_file: bool = False,
) -> logging.Logger:
    """
    Set up logging for HostDiag.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Log file path (defaults to ~/.hostdiag/logs/hostdiag.log)
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated files to keep
        enable_console: Log to stderr
        enable_file: Log to a rotating file

    Returns:
        The package logger
    """
    logger = logging.getLogger("hostdiag")
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    if enable_console:
        # stderr keeps log lines out of --json-output
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(getattr(logging, level.upper()))
        console_handler.setFormatter(logging.Formatter(
            fmt='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
            datefmt='%H:%M:%S'
        ))
        logger.addHandler(console_handler)

    if enable_file:
        log_path = Path(log_file) if log_file else default_log_path()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(StructuredFormatter(
            fmt='%(asctime)s | %(levelname)-8s | %(name)-24s | %(function_name)-20s | '
                '%(lineno)-4d | %(threadName)-12s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    Args:
        name: Module name (e.g., 'hostdiag.diag.core')
    """
    return logging.getLogger(name)


def configure_logging(debug: bool = False, log_file: str | None = None) -> None:
    """Quick logging configuration used by the CLI."""
    setup_logging(
        level="DEBUG" if debug else "WARNING",
        log_file=log_file,
        enable_console=True,
        enable_file=log_file is not None,
    )


class ErrorTracker:
    """Count failures by type across concurrently running probes."""

    def __init__(self):
        self.errors: dict[str, int] = {}
        self.logger = get_logger(__name__)
        self._lock = threading.Lock()

    def log_error(
        self,
        error_type: str,
        message: str,
        exception: BaseException | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """
        Log an error with tracking.

        Args:
            error_type: Type of error (e.g., 'probe_unexpected', 'table_read')
            message: Error message
            exception: Exception object if available
            context: Additional context data
        """
        with self._lock:
            self.errors[error_type] = self.errors.get(error_type, 0) + 1

        log_msg = f"{error_type}: {message}"
        if context:
            log_msg += f" | Context: {context}"

        if exception:
            self.logger.error(log_msg, exc_info=exception)
        else:
            self.logger.error(log_msg)

    def get_error_counts(self) -> dict[str, int]:
        with self._lock:
            return self.errors.copy()

    def reset_counts(self) -> None:
        with self._lock:
            self.errors.clear()


_error_tracker = ErrorTracker()


def track_error(
    error_type: str,
    message: str,
    exception: BaseException | None = None,
    context: dict[str, Any] | None = None,
) -> None:
    """Track an error globally."""
    _error_tracker.log_error(error_type, message, exception, context)


def get_error_stats() -> dict[str, int]:
    """Get global error statistics."""
    return _error_tracker.get_error_counts()


def reset_error_stats() -> None:
    _error_tracker.reset_counts()
