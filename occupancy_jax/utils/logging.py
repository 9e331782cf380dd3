"""
Logging utilities for occupancy-jax.

Provides structured logging with configurable levels, formats, and outputs.
"""

import logging
import sys
import time
from functools import wraps

from ..config.settings import get_default_config, LogLevel


class ColoredFormatter(logging.Formatter):
    """Colored console formatter for better readability."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
        "RESET": "\033[0m",
    }

    def format(self, record):
        """Format log record with colors."""
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class OccupancyJaxLogger:
    """Logger wrapper for occupancy-jax with lazy configuration and key=value context."""

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(name)
        self._configured = False

    def _ensure_configured(self):
        if not self._configured:
            self._configure()
            self._configured = True

    def _configure(self):
        """Configure the logger based on settings."""
        logging_config = get_default_config().logging
        level = logging_config.level
        level_name = level.value if isinstance(level, LogLevel) else str(level)
        self.logger.setLevel(getattr(logging, level_name.upper()))

        self.logger.handlers.clear()

        if logging_config.console_logging:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(ColoredFormatter(logging_config.format_string))
            self.logger.addHandler(console_handler)

        if logging_config.file_logging and logging_config.log_file:
            logging_config.log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(logging_config.log_file)
            file_handler.setFormatter(logging.Formatter(logging_config.format_string))
            self.logger.addHandler(file_handler)

        # Prevent propagation to avoid duplicate messages
        self.logger.propagate = False

    def debug(self, message: str, **kwargs):
        self._ensure_configured()
        self.logger.debug(self._format_message(message, **kwargs))

    def info(self, message: str, **kwargs):
        self._ensure_configured()
        self.logger.info(self._format_message(message, **kwargs))

    def warning(self, message: str, **kwargs):
        self._ensure_configured()
        self.logger.warning(self._format_message(message, **kwargs))

    def _format_message(self, message: str, **kwargs) -> str:
        """Format message with context."""
        if kwargs:
            context_str = " | ".join(f"{k}={v}" for k, v in kwargs.items())
            return f"{message} | {context_str}"
        return message


# Global logger registry
_loggers = {}


def get_logger(name: str = "occupancy_jax") -> OccupancyJaxLogger:
    """
    Get a logger instance.

    Args:
        name: Logger name (defaults to 'occupancy_jax')

    Returns:
        Lazily configured logger instance
    """
    if name not in _loggers:
        _loggers[name] = OccupancyJaxLogger(name)
    return _loggers[name]


def reconfigure_loggers() -> None:
    """Apply the current logging settings to every logger on its next use."""
    for logger in _loggers.values():
        logger._configured = False


def log_performance(func):
    """Decorator to log function duration at debug level."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        logger = get_logger(func.__module__)
        start_time = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            duration = time.perf_counter() - start_time
            logger.debug(f"{func.__name__} failed after {duration:.4f}s: {e}")
            raise
        logger.debug(f"{func.__name__} completed", duration_seconds=round(time.perf_counter() - start_time, 6))
        return result

    return wrapper
