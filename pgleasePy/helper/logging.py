"""
Logging utilities for pgleasePy.
Colored console output with key=value context appended to each message.
"""

import logging
import sys
from typing import Any, Dict, Optional, TextIO


class ColorFormatter(logging.Formatter):
    """
    Colored log formatter for console output.
    Only the level prefix is colored, the message stays plain.
    """

    # ANSI color codes
    COLORS = {
        "DEBUG": "\033[95m",  # Magenta
        "INFO": "\033[94m",  # Blue
        "WARNING": "\033[93m",  # Yellow
        "ERROR": "\033[91m",  # Red
        "CRITICAL": "\033[95m",  # Magenta
        "RESET": "\033[0m",  # Reset
    }

    def __init__(self, use_colors: bool = True, include_timestamp: bool = True):
        """
        Initialize the color formatter.

        :param use_colors: Whether to use colors in the output.
        :param include_timestamp: Whether to include timestamps in log messages.
        """
        self.use_colors = use_colors and sys.stdout.isatty()
        self.include_timestamp = include_timestamp

        if include_timestamp:
            fmt = "%(asctime)s %(levelname)s [%(name)s]: %(message)s"
        else:
            fmt = "%(levelname)s [%(name)s]: %(message)s"

        super().__init__(fmt, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        """
        Format the log record with colors.

        :param record: The log record to format.
        :returns: The formatted log message string.
        """
        formatted = super().format(record)

        if self.use_colors and record.levelname in self.COLORS:
            color = self.COLORS[record.levelname]
            reset = self.COLORS["RESET"]
            parts = formatted.split(": ", 1)
            if len(parts) == 2:
                level_part, message_part = parts
                formatted = f"{color}{level_part}: {reset}{message_part}"

        return formatted


class PgleaseLogger:
    """
    Logger for connection and pool operations.
    Keyword arguments passed to the log methods are appended as key=value pairs,
    together with the fixed context bound through with_context.
    """

    def __init__(
        self,
        name: str = "pglease",
        level: int = logging.INFO,
        use_colors: bool = True,
        stream: Optional[TextIO] = None,
    ):
        """
        Initialize the logger and install a single console handler.

        :param name: Logger name.
        :param level: Logging level.
        :param use_colors: Whether to use colored output.
        :param stream: Output stream (defaults to sys.stdout).
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self.context: Dict[str, Any] = {}

        # Remove existing handlers to avoid duplicates
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)

        handler = logging.StreamHandler(stream or sys.stdout)
        handler.setFormatter(ColorFormatter(use_colors=use_colors))

        self.logger.addHandler(handler)
        self.logger.propagate = False

    def with_context(self, **kwargs: Any) -> "PgleaseLogger":
        """
        Return a logger sharing this one's handler with extra fixed context.

        :param kwargs: Context added to every message of the returned logger.
        :returns: A new PgleaseLogger bound to the same underlying logger.
        """
        bound = object.__new__(PgleaseLogger)
        bound.logger = self.logger
        bound.context = {**self.context, **kwargs}
        return bound

    def debug(self, message: str, **kwargs: Any) -> None:
        self.log_with_context(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self.log_with_context(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.log_with_context(logging.WARNING, message, **kwargs)

    def error(
        self, message: str, error: Optional[BaseException] = None, **kwargs: Any
    ) -> None:
        """
        Log error message with optional exception and context.

        :param message: The log message.
        :param error: Optional exception to include in the log.
        :param kwargs: Additional context to include in the log.
        """
        if error:
            message = f"{message}: {error}"
        self.log_with_context(logging.ERROR, message, **kwargs)

    def log_with_context(self, level: int, message: str, **kwargs: Any) -> None:
        """
        Log message with the bound context and per-call context.

        :param level: Logging level.
        :param message: The log message.
        :param kwargs: Additional context to include in the log.
        """
        context = {**self.context, **kwargs}
        if context:
            context_parts = [f"{k}={v}" for k, v in context.items()]
            message += " | " + " ".join(context_parts)

        self.logger.log(level, message)

    def set_level(self, level: int) -> None:
        """Set the logging level."""
        self.logger.setLevel(level)


PACKAGE_LOGGER = "pglease"

# One PgleaseLogger per logger name, so handlers are installed once.
_loggers: Dict[str, PgleaseLogger] = {}


def get_logger(name: str = PACKAGE_LOGGER) -> PgleaseLogger:
    """
    Get the logger registered under name, creating it on first use.

    :param name: Logger name.
    :returns: PgleaseLogger instance.
    """
    logger = _loggers.get(name)
    if logger is None:
        logger = _loggers[name] = PgleaseLogger(name)
    return logger


def setup_logging(
    level: int = logging.INFO, use_colors: bool = True, name: str = PACKAGE_LOGGER
) -> PgleaseLogger:
    """
    Configure the logger returned by get_logger for name.

    :param level: Logging level.
    :param use_colors: Whether to use colors in logs.
    :param name: Logger name.
    :returns: Configured PgleaseLogger instance.
    """
    logger = _loggers[name] = PgleaseLogger(name, level, use_colors)
    return logger
