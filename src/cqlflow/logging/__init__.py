"""Logging infrastructure for cqlflow.

This module provides structured logging with JSON output and context
tracking for request and table correlation.
"""

from cqlflow.logging.filters import ContextFilter, table_context
from cqlflow.logging.logger import CustomJsonFormatter, configure_logging, get_logger, setup_logging

__all__ = [
    "get_logger",
    "setup_logging",
    "configure_logging",
    "table_context",
    "CustomJsonFormatter",
    "ContextFilter",
]
