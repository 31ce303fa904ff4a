from __future__ import annotations

import logging
import sys
from typing import TextIO

"""Labeled logging for the editor core and its CLI.

Every module in the package logs through ``logging.getLogger(__name__)``;
since they all live under ``sheet_editor.*`` one configured logger receives
their records. Lines look like ``WARN message`` so hosts and tests can grep
for the label. Contained errors additionally go to the buffer in
``sheet_editor.logging.error_log``.
"""

__all__ = [
    "LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "set_level",
    "get_logger",
    "log_summary",
    "reset_logging",
]

LOGGER_NAME = "sheet_editor"

# INFO(20) と WARNING(30) の間
SUMMARY_LEVEL = 25

LEVEL_LABELS = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    SUMMARY_LEVEL: "SUMMARY",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "CRITICAL",
}

_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """``LABEL message``; ERROR and above get the traceback appended."""

    def format(self, record: logging.LogRecord) -> str:
        label = LEVEL_LABELS.get(record.levelno, record.levelname)
        line = f"{label} {record.getMessage()}"
        if record.exc_info and record.levelno >= logging.ERROR:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: int | str = logging.INFO, *, stream: TextIO | None = None) -> logging.Logger:
    """Configure the ``sheet_editor`` logger once and return it.

    Later calls return the same logger untouched; use ``set_level`` to change
    verbosity, or ``reset_logging`` to start over (tests).
    """
    global _logger
    if _logger is not None:
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    _logger = logger
    set_level(level)
    return logger


def set_level(level: int | str) -> None:
    """Apply ``level`` to the package logger and all of its handlers."""
    logger = get_logger()
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


def get_logger() -> logging.Logger:
    return _logger if _logger is not None else setup_logging()


def log_summary(message: str) -> None:
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Detach our handler and hand the logger back to normal propagation."""
    global _logger
    if _logger is not None:
        for handler in _logger.handlers[:]:
            _logger.removeHandler(handler)
        _logger.propagate = True
        _logger.setLevel(logging.NOTSET)
    _logger = None
