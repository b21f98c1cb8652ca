"""Structured logging for bulk loads.

Console output for local development, JSON for deployed services.

Usage:
    from bulkload.core.logging import get_logger, configure_logging

    # Configure at startup
    configure_logging(log_level="INFO", log_format="console")

    # Get logger in any module
    logger = get_logger(__name__)

    # Log with structured context
    logger.info("bulk_load_started", table="person", rows=1000)

    # Scoped context propagated to every event in the block
    with log_context(load_id="abc123", table="person"):
        logger.info("staging_table_created", staging="tmp_person_...")
"""

from __future__ import annotations

import logging
import sys
import time
from collections.abc import MutableMapping
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, cast

import structlog
from structlog.typing import FilteringBoundLogger

from bulkload.core.config import get_settings

# Context variables for correlation
_load_context: ContextVar[dict[str, Any] | None] = ContextVar("load_context", default=None)


@dataclass
class LoadMetrics:
    """Counters and timings collected during one load call."""

    table: str
    started: float = field(default_factory=time.perf_counter)
    finished: float | None = None

    rows_streamed: int = 0
    rows_inserted: int = 0
    attempts: int = 0

    # Sub-operation timings (seconds)
    timings: dict[str, float] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> float:
        """Get duration in seconds."""
        end = self.finished if self.finished is not None else time.perf_counter()
        return end - self.started

    def record_timing(self, operation: str, seconds: float) -> None:
        """Record timing for a sub-operation."""
        self.timings[operation] = self.timings.get(operation, 0.0) + seconds

    def finish(self) -> LoadMetrics:
        self.finished = time.perf_counter()
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "table": self.table,
            "duration_seconds": round(self.duration_seconds, 6),
            "rows_streamed": self.rows_streamed,
            "rows_inserted": self.rows_inserted,
            "attempts": self.attempts,
            "timings": self.timings,
        }


def _add_load_context(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Processor to add load context to log events."""
    context = _load_context.get()
    if context:
        event_dict.update(context)
    return event_dict


def configure_logging(
    log_level: str | None = None,
    log_format: str | None = None,
    show_timestamps: bool = True,
    color: bool = True,
) -> None:
    """Configure structured logging for the application.

    Importing bulkload never calls this; applications opt in at startup.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR), defaults to settings
        log_format: "console" for development, "json" for production, defaults to settings
        show_timestamps: Whether to show timestamps
        color: Whether to use colors in console mode
    """
    settings = get_settings()
    log_level = log_level or settings.log_level
    log_format = log_format or settings.log_format

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_load_context,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if show_timestamps:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))

    if log_format == "json":
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(
                colors=color,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, log_level.upper())),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # psycopg and sqlalchemy log through stdlib logging
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    """Get a structured logger.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Bound structlog logger
    """
    return cast(FilteringBoundLogger, structlog.get_logger(name))


class LogContext:
    """Context manager for adding context to logs within a scope."""

    def __init__(self, **context: Any):
        self.context = context
        self.token: Any = None

    def __enter__(self) -> LogContext:
        current = _load_context.get() or {}
        self.token = _load_context.set({**current, **self.context})
        return self

    def __exit__(self, *args: Any) -> None:
        if self.token:
            _load_context.reset(self.token)


def log_context(**context: Any) -> LogContext:
    """Create a context manager for scoped logging context.

    Usage:
        with log_context(load_id="abc", table="person"):
            logger.info("processing")  # Will include load_id and table
    """
    return LogContext(**context)

