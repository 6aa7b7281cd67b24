# glt/utils/logging_utils.py
"""
Logging utilities for tqdm-compatible output.
Provides handlers that prevent logging output from breaking tqdm progress bars,
and lets the console handler be detached once the TUI owns the screen.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Final

from tqdm import tqdm

_DEFAULT_FMT: Final[str] = "[%(asctime)s][%(levelname)s] %(message)s"
_DEFAULT_DATEFMT: Final[str] = "%d-%m-%Y %H:%M:%S"

LOGGER_NAME: Final[str] = "gitlab_tree"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that prints messages using tqdm.write().

    This prevents log lines from corrupting active tqdm progress bars.
    """

    def __init__(self, level: int | str = logging.NOTSET) -> None:
        super().__init__(level)

    def emit(self, record: logging.LogRecord) -> None:
        """
        Emit a log record via tqdm.write().

        Args:
            record: Logging record.
        """
        try:
            msg = self.format(record)
            tqdm.write(msg)
        except Exception:
            self.handleError(record)


def coerce_log_level(value: int | str | None) -> int:
    """Coerce a human-friendly log level into a logging module constant."""
    if value is None:
        return logging.WARNING
    if isinstance(value, int):
        return value
    v = value.strip().upper()
    mapping = {
        "CRITICAL": logging.CRITICAL,
        "ERROR": logging.ERROR,
        "WARN": logging.WARNING,
        "WARNING": logging.WARNING,
        "INFO": logging.INFO,
        "DEBUG": logging.DEBUG,
    }
    return mapping.get(v, logging.WARNING)


def build_logger(
        *,
        name: str = LOGGER_NAME,
        level: int,
        log_file: str | None = None,
        fmt: str = _DEFAULT_FMT,
        datefmt: str = _DEFAULT_DATEFMT,
) -> logging.Logger:
    """
    Build and configure a logger with tqdm-compatible console output and optional file logging.

    This function:
    - disables propagation to avoid duplicate output
    - resets existing handlers on the named logger
    - adds a tqdm-compatible console handler
    - optionally adds a file handler

    Module loggers ("gitlab_tree.cache", "gitlab_tree.fetcher", ...) are
    children of this logger and inherit its handlers.
    """
    logger = logging.getLogger(name)
    logger.propagate = False
    logger.setLevel(level)

    # Reset handlers to avoid duplicates (e.g. multiple instances)
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()

    formatter = logging.Formatter(fmt, datefmt=datefmt)

    tqdm_h = TqdmLoggingHandler(level=level)
    tqdm_h.setFormatter(formatter)
    logger.addHandler(tqdm_h)

    if log_file:
        log_path = Path(log_file).expanduser().resolve()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_h = logging.FileHandler(log_path, encoding="utf-8")
        file_h.setLevel(level)
        file_h.setFormatter(formatter)
        logger.addHandler(file_h)

    return logger


def detach_console(logger: logging.Logger) -> None:
    """
    Remove console handlers from `logger`.

    Called right before the full-screen UI starts; file handlers stay. A
    NullHandler is installed when nothing else is left so records are not
    routed to logging's last-resort stderr handler.
    """
    for h in list(logger.handlers):
        if isinstance(h, TqdmLoggingHandler):
            logger.removeHandler(h)
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
