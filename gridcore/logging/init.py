from __future__ import annotations

import logging
import sys

"""Logging initialization with labeled prefixes.

Every line starts with a level label (INFO|WARN|ERROR|SUMMARY). Service
modules log through ``logging.getLogger(__name__)``; their loggers live under
the ``gridcore`` namespace and propagate into the handler installed here.
"""

__all__ = [
    "APP_LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "get_logger",
    "log_summary",
    "set_debug",
    "reset_logging",
]

APP_LOGGER_NAME = "gridcore"

# SUMMARY は INFO(20) と WARNING(30) の間
SUMMARY_LEVEL = 25

_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """Formats records as ``LABEL message``."""

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
        SUMMARY_LEVEL: "SUMMARY",
    }

    def format(self, record: logging.LogRecord) -> str:
        label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        line = f"{label} {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Configure the application logger once and return it.

    Output goes to stdout. Propagation to the root logger is disabled to avoid
    duplicate lines.
    """
    global _logger
    if _logger is not None:
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    logger = logging.getLogger(APP_LOGGER_NAME)
    logger.setLevel(level)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    if _logger is None:
        return setup_logging()
    return _logger


def log_summary(message: str) -> None:
    """Log ``message`` at SUMMARY level."""
    get_logger().log(SUMMARY_LEVEL, message)


def set_debug(enabled: bool = True) -> None:
    logger = get_logger()
    level = logging.DEBUG if enabled else logging.INFO
    logger.setLevel(level)
    for h in logger.handlers:
        h.setLevel(level)


def reset_logging() -> None:
    """Forget the configured logger. Mainly for tests."""
    global _logger
    if _logger is not None:
        for handler in _logger.handlers[:]:
            _logger.removeHandler(handler)
    _logger = None
