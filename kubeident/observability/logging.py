"""Structured logging configuration using structlog.

Production output is one JSON object per line on stderr; ``fmt="console"``
switches to structlog's human-readable renderer for local runs against a
kubeconfig.
"""

from __future__ import annotations

import logging
import sys

import structlog

_RENDERERS = {
    "json": structlog.processors.JSONRenderer,
    "console": structlog.dev.ConsoleRenderer,
}


def setup_logging(level: str = "info", fmt: str = "json") -> None:
    """Configure structlog processors, level filtering and renderer."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    renderer = _RENDERERS.get(fmt, structlog.processors.JSONRenderer)()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str, **context: object) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name and optional extra context."""
    return structlog.get_logger(component=component, **context)  # type: ignore[return-value]
