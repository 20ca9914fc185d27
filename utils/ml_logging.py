"""
Logging helpers
===============

Thin wrapper around the standard library logger used across the backend.

Every logger returned by :func:`get_logger` shares the same console format and
carries the active OpenTelemetry trace id so log lines can be joined with the
``handoffdesk.*`` spans emitted by the session manager.

Usage:
    from utils.ml_logging import get_logger

    logger = get_logger("voice.lifecycle")
    logger.info("Connecting | scenario=%s persona=%s", key, persona)
"""

from __future__ import annotations

import logging
import os
import sys

from opentelemetry import trace

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [trace=%(trace_id)s]: %(message)s"
_HANDLER_MARKER = "_handoffdesk_handler"


class TraceContextFilter(logging.Filter):
    """Attach the current trace/span ids (or ``-``) to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            record.trace_id = format(span_context.trace_id, "032x")
            record.span_id = format(span_context.span_id, "016x")
        else:
            record.trace_id = "-"
            record.span_id = "-"
        return True


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def get_logger(
    logger_name: str = "handoffdesk",
    level: int | str | None = None,
    include_stream_handler: bool = True,
) -> logging.Logger:
    """
    Return a configured logger.

    Args:
        logger_name: Dotted logger name (e.g. ``"voice.lifecycle"``)
        level: Explicit level; defaults to the ``LOG_LEVEL`` env var
        include_stream_handler: Attach the shared stderr handler

    Returns:
        The named ``logging.Logger``; repeated calls never stack handlers.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(_resolve_level(level))

    if include_stream_handler and not any(
        getattr(h, _HANDLER_MARKER, False) for h in logger.handlers
    ):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
        handler.addFilter(TraceContextFilter())
        setattr(handler, _HANDLER_MARKER, True)
        logger.addHandler(handler)

    return logger


__all__ = ["get_logger", "TraceContextFilter", "DEFAULT_LOG_FORMAT"]
