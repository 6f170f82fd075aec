"""Shared utilities for the basket ledger."""

from basket_ledger.utils.config import ConfigLoader
from basket_ledger.utils.logging import LoggingMixin, setup_logging
from basket_ledger.utils.io import EventLog

__all__ = [
    "ConfigLoader",
    "LoggingMixin",
    "setup_logging",
    "EventLog",
]
