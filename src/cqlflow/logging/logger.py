"""Structured JSON logging for migrations and statement execution.

Records are rendered as one JSON object per line. Migration fields
(``table``, ``step``, ``phase``, ``statement``) are promoted to fixed
top-level keys, and records emitted inside a ``@traced`` span carry the
span's ``trace_id`` and ``span_id`` so log lines can be joined with traces.
Configuration stays declarative via ``logging.config.dictConfig``.
"""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set, Tuple

from opentelemetry import trace

# Emitted in this order right after the message, when present.
PROMOTED_FIELDS = ("table", "step", "phase", "statement", "error_code")

MAX_STATEMENT_LENGTH = 2000


def _build_reserved_keys() -> Set[str]:
    """Collect standard ``LogRecord`` attributes to avoid duplicating them."""
    template = logging.LogRecord(
        name="cqlflow.reserved",
        level=logging.INFO,
        pathname=__file__,
        lineno=0,
        msg="",
        args=(),
        exc_info=None,
    )
    reserved = set(template.__dict__.keys())
    reserved.update({"asctime", "message", "otelTraceID", "otelSpanID", "otelServiceName", "otelTraceSampled"})
    return reserved


_RESERVED_LOG_RECORD_KEYS = _build_reserved_keys()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _trace_ids(record: logging.LogRecord) -> Tuple[Optional[str], Optional[str]]:
    # Set by opentelemetry-instrumentation-logging when it is installed.
    if hasattr(record, "otelTraceID") and hasattr(record, "otelSpanID"):
        return record.otelTraceID, record.otelSpanID

    span_context = trace.get_current_span().get_span_context()
    if not span_context.is_valid:
        return None, None
    return format(span_context.trace_id, "032x"), format(span_context.span_id, "016x")


class CustomJsonFormatter(logging.Formatter):
    """JSON formatter that enriches log entries with migration and trace data."""

    def format(self, record: logging.LogRecord) -> str:
        log_record: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in PROMOTED_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_record[key] = value
        statement = log_record.get("statement")
        if isinstance(statement, str) and len(statement) > MAX_STATEMENT_LENGTH:
            log_record["statement"] = statement[:MAX_STATEMENT_LENGTH] + "..."

        trace_id, span_id = _trace_ids(record)
        if trace_id is not None:
            log_record["trace_id"] = trace_id
            log_record["span_id"] = span_id

        for key, value in record.__dict__.items():
            if key not in _RESERVED_LOG_RECORD_KEYS and key not in log_record and key not in PROMOTED_FIELDS:
                log_record[key] = value

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Configure structured logging backed by ``logging.config.dictConfig``.

    Args:
        level: Base log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    config_dict: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "cqlflow_json": {
                "()": "cqlflow.logging.logger.CustomJsonFormatter",
            }
        },
        "filters": {
            "cqlflow_context": {
                "()": "cqlflow.logging.filters.ContextFilter",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level.upper(),
                "formatter": "cqlflow_json",
                "filters": ["cqlflow_context"],
                "stream": "ext://sys.stdout",
            }
        },
        "root": {
            "level": level.upper(),
            "handlers": ["console"],
        },
    }

    logging.config.dictConfig(config_dict)


def configure_logging(settings=None) -> str:
    """Configure logging from application settings.

    Args:
        settings: Settings object; defaults to ``get_settings()``, which reads
            ``CQLFLOW_LOG_LEVEL``.

    Returns:
        The level that was applied
    """
    if settings is None:
        from cqlflow.settings import get_settings

        settings = get_settings()
    setup_logging(settings.log_level)
    return settings.log_level
