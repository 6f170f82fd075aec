#!/usr/bin/env python3
"""
Logging setup shared across the basket ledger.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    fmt: str = LOG_FORMAT,
) -> logging.Logger:
    """
    Setup logging to console and, optionally, a file.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...)
        log_file: Optional path of a log file; parent directories are created
        fmt: Log record format

    Returns:
        The package root logger
    """
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=fmt,
        handlers=handlers,
        force=True,
    )
    return logging.getLogger("basket_ledger")


class LoggingMixin:
    """Gives a class a named logger and short logging helpers."""

    @property
    def logger(self) -> logging.Logger:
        cls = self.__class__
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    def log(self, message: str) -> None:
        self.logger.info(message)

    def log_debug(self, message: str) -> None:
        self.logger.debug(message)

    def log_warning(self, message: str) -> None:
        self.logger.warning(message)

    def log_error(self, message: str) -> None:
        self.logger.error(message)
