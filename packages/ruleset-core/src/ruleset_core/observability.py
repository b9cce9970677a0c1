"""Structured logging and OpenTelemetry spans for ruleset-core.

This module provides:
- Structured logging setup via structlog
- OpenTelemetry span helpers for compilation runs and targets

Spans are created as non-current spans because the pipeline is a generator
and may be suspended between events.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, TextIO

import structlog
from opentelemetry import trace
from opentelemetry.trace import SpanKind, Status, StatusCode

if TYPE_CHECKING:
    from opentelemetry.trace import Span, Tracer

TRACER_NAME = "ruleset.core"

LOG_LEVEL_ENV = "RULESET_LOG_LEVEL"
LOG_FORMAT_ENV = "RULESET_LOG_FORMAT"

SERVICE_NAME = "ruleset-core"

_tracer: Tracer | None = None


def get_tracer() -> Tracer:
    """Get the OpenTelemetry tracer for ruleset-core.

    Returns:
        OpenTelemetry Tracer instance.
    """
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(TRACER_NAME)
    return _tracer


def _add_service(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(
    *,
    log_level: str = "INFO",
    json_format: bool = True,
    add_timestamp: bool = True,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog for ruleset-core.

    Events below ``log_level`` are dropped by the bound logger itself, so
    debug events in the cache and executor cost nothing at INFO. Values
    bound with ``structlog.contextvars.bind_contextvars`` (for example a
    watch session id) are merged into every event.

    Args:
        log_level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: Render JSON lines, else the console renderer.
        add_timestamp: Add a UTC ISO timestamp to every event.
        stream: Output stream. Defaults to stderr.

    Raises:
        ValueError: If log_level is not a known level name.

    Example:
        >>> configure_logging(log_level="DEBUG", json_format=False)
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        _add_service,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if add_timestamp:
        processors.insert(1, structlog.processors.TimeStamper(fmt="iso", utc=True))
    processors.append(
        structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=True,
    )


def configure_logging_from_env(env: Mapping[str, str] | None = None) -> None:
    """Configure logging from RULESET_LOG_LEVEL and RULESET_LOG_FORMAT.

    Args:
        env: Environment mapping. Defaults to os.environ.
    """
    source = os.environ if env is None else env
    configure_logging(
        log_level=source.get(LOG_LEVEL_ENV, "INFO"),
        json_format=source.get(LOG_FORMAT_ENV, "json").lower() != "console",
    )


def start_span(name: str, *, attributes: dict[str, Any] | None = None) -> Span:
    """Start a span that is not attached to the current context.

    Args:
        name: Span name (e.g., "ruleset.compile").
        attributes: Optional span attributes.

    Returns:
        The started span. Callers must end it with finish_span().
    """
    clean = {key: value for key, value in (attributes or {}).items() if value is not None}
    return get_tracer().start_span(name, kind=SpanKind.INTERNAL, attributes=clean)


def finish_span(span: Span, error: BaseException | None = None) -> None:
    """Set the span status and end it.

    Args:
        span: Span returned by start_span().
        error: Exception that terminated the work, if any.
    """
    if error is None:
        span.set_status(Status(StatusCode.OK))
    else:
        span.set_status(Status(StatusCode.ERROR, str(error)))
        span.record_exception(error)
    span.end()
