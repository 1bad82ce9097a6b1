"""
Logging utilities for REPOSITORY_FRAMEWORK.

Adds a correlation ID and the repository being used (entity, backend) to log
records so a single logical query can be followed across backends.
"""

import contextlib
import contextvars
import logging
import uuid
from collections.abc import Iterator
from datetime import datetime
from typing import Any

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)

_repository_context: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "repository_context", default=None
)


def get_correlation_id() -> str | None:
    """Get the current correlation ID from context."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """
    Set a correlation ID in the current context.

    Args:
        correlation_id: Optional correlation ID (generates new one if None)

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    _correlation_id.set(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    """Clear the correlation ID from context."""
    _correlation_id.set(None)


def set_repository_context(
    entity: str | None = None, backend: str | None = None, **kwargs: Any
) -> None:
    """
    Set repository context for logging.

    Args:
        entity: Entity class name
        backend: Repository class name
        **kwargs: Additional context (table, collection, bucket, ...)
    """
    _repository_context.set({"entity": entity, "backend": backend, **kwargs})


def clear_repository_context() -> None:
    """Clear repository context."""
    _repository_context.set(None)


@contextlib.contextmanager
def repository_scope(
    entity: str | None = None, backend: str | None = None, **kwargs: Any
) -> Iterator[None]:
    """
    Set the repository context for a block and restore the outer one afterwards.

    Nested scopes (a unit of work calling a repository) keep the outer
    values the inner scope does not override.
    """
    outer = _repository_context.get() or {}
    inner = {"entity": entity, "backend": backend, **kwargs}
    merged = {**outer, **{k: v for k, v in inner.items() if v is not None}}
    token = _repository_context.set(merged)
    try:
        yield
    finally:
        _repository_context.reset(token)


def get_logging_context() -> dict[str, Any]:
    """Get current logging context (correlation ID and repository context)."""
    context: dict[str, Any] = {"timestamp": datetime.now().isoformat()}

    correlation_id = get_correlation_id()
    if correlation_id:
        context["correlation_id"] = correlation_id

    repository_context = _repository_context.get()
    if repository_context:
        context.update({k: v for k, v in repository_context.items() if v is not None})

    return context


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds the logging context to every record."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = get_logging_context()
        extra = kwargs.get("extra", {})
        if extra:
            context.update(extra)
        kwargs["extra"] = context
        return msg, kwargs


def get_logger(name: str) -> ContextualLoggerAdapter:
    """
    Get a contextual logger.

    Args:
        name: Logger name (typically __name__)
    """
    return ContextualLoggerAdapter(logging.getLogger(name), {})


def log_operation(
    logger: logging.Logger,
    operation: str,
    level: int = logging.DEBUG,
    success: bool = True,
    duration_ms: float | None = None,
    **context: Any,
) -> None:
    """
    Log a repository operation with structured context.

    Args:
        logger: Logger instance
        operation: Operation name (e.g. "find")
        level: Log level
        success: Whether operation succeeded
        duration_ms: Operation duration in milliseconds
        **context: Additional context (entity, count, ...)
    """
    log_context = get_logging_context()
    log_context.update({"operation": operation, "success": success})
    if duration_ms is not None:
        log_context["duration_ms"] = round(duration_ms, 2)
    log_context.update(context)

    message = f"Operation: {operation}" if success else f"Operation failed: {operation}"
    if duration_ms is not None:
        message += f" (duration: {duration_ms:.2f}ms)"

    logger.log(level, message, extra=log_context)
