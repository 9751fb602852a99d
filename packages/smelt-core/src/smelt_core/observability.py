"""Structured logging and OpenTelemetry spans for smelt-core.

Every compiler invocation and every flatten request runs inside a span that
also emits ``<name>_started`` / ``<name>_completed`` / ``<name>_failed``
log events, so traces and logs line up on the same attributes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from opentelemetry import trace
from opentelemetry.trace import Span, SpanKind, Status, StatusCode, Tracer

TRACER_NAME = "smelt.core"

logger = structlog.get_logger(TRACER_NAME)


def get_logger() -> Any:
    """Return the smelt-core logger."""
    return logger


def get_tracer() -> Tracer:
    """Return the smelt-core tracer from the globally configured provider."""
    return trace.get_tracer(TRACER_NAME)


def configure_logging(
    *,
    log_level: str = "INFO",
    json_format: bool = True,
    add_timestamp: bool = True,
) -> None:
    """Configure structlog for scripts that embed smelt-core.

    Host applications normally own logging setup and should not call this.

    Args:
        log_level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: Render JSON lines; otherwise the console renderer.
        add_timestamp: Prepend an ISO timestamp to each event.

    Example:
        >>> configure_logging(log_level="DEBUG", json_format=False)
    """
    processors: list[Any] = [
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))
    processors.append(
        structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def span(
    name: str,
    *,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Span]:
    """Run a block inside a span and log its outcome.

    Exceptions mark the span as failed and propagate unchanged.

    Example:
        >>> with span("flatten", attributes={"smelt.root": "src/Token.sol"}):
        ...     ...
    """
    attrs = attributes or {}
    with get_tracer().start_as_current_span(name, kind=kind, attributes=attrs) as current:
        logger.debug(f"{name}_started", **attrs)
        try:
            yield current
        except Exception as exc:
            current.set_status(Status(StatusCode.ERROR, str(exc)))
            current.record_exception(exc)
            logger.error(f"{name}_failed", error=str(exc), **attrs)
            raise
        current.set_status(Status(StatusCode.OK))
        logger.info(f"{name}_completed", **attrs)


@contextmanager
def compiler_invocation(batch_id: str, *, version: str, file_count: int) -> Iterator[Span]:
    """Span around one external compiler call for a batch."""
    attrs: dict[str, Any] = {
        "smelt.batch_id": batch_id,
        "smelt.compiler_version": version,
        "smelt.file_count": file_count,
    }
    with span("compile_batch", kind=SpanKind.CLIENT, attributes=attrs) as current:
        yield current


@contextmanager
def flatten_request(root: str) -> Iterator[Span]:
    """Span around flattening one root file."""
    with span("flatten", attributes={"smelt.root": root}) as current:
        yield current


def log_retry_attempt(
    operation: str,
    attempt: int,
    max_attempts: int,
    wait_seconds: float,
    error: str,
) -> None:
    """Log that a failed attempt will be retried after ``wait_seconds``."""
    logger.warning(
        "operation_retry",
        operation=operation,
        attempt=attempt,
        max_attempts=max_attempts,
        wait_seconds=round(wait_seconds, 3),
        error=error,
    )
