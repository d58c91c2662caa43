"""Logging filters for context injection.

This module provides filters that inject context variables into log records,
enabling correlation of logs across requests and schema migrations.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional
from cqlflow.__version__ import __version__

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
table_var: ContextVar[Optional[str]] = ContextVar("table", default=None)


class ContextFilter(logging.Filter):
    """Logging filter that adds context variables to log records.

    This filter extracts values from context variables and adds them to
    log records, enabling log correlation across operations on one table.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Add context variables to the log record.

        Args:
            record: Log record to enhance

        Returns:
            Always True (doesn't filter out any records)
        """
        setattr(record, "request_id", request_id_var.get())
        if not hasattr(record, "table"):
            setattr(record, "table", table_var.get())
        setattr(record, "sdk_name", "cqlflow")
        setattr(record, "cqlflow_version", __version__)

        return True


def set_request_context(
    request_id: Optional[str] = None,
    table: Optional[str] = None,
) -> None:
    """Set request context variables."""
    if request_id is not None:
        request_id_var.set(request_id)
    if table is not None:
        table_var.set(table)


def clear_request_context() -> None:
    """Clear all request context variables."""
    request_id_var.set(None)
    table_var.set(None)


@contextmanager
def table_context(table: str) -> Iterator[None]:
    """Stamp every record logged inside the block with ``table``.

    The previous value is restored on exit, so nested blocks for other
    tables do not leak into the caller's records.
    """
    token = table_var.set(table)
    try:
        yield
    finally:
        table_var.reset(token)
