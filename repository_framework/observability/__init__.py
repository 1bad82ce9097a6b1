"""
Observability components.

Provides contextual logging and metrics collection for repository operations.
"""

from .logging import (ContextualLoggerAdapter, clear_correlation_id,
                      clear_repository_context, get_correlation_id,
                      get_logger, get_logging_context, log_operation,
                      repository_scope, set_correlation_id,
                      set_repository_context)
from .metrics import (MetricsCollector, OperationMetrics,
                      get_metrics_collector, record_operation,
                      timed_operation)

__all__ = [
    # Metrics
    "MetricsCollector",
    "OperationMetrics",
    "get_metrics_collector",
    "record_operation",
    "timed_operation",
    # Logging
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "set_repository_context",
    "clear_repository_context",
    "repository_scope",
    "get_logging_context",
    "ContextualLoggerAdapter",
    "get_logger",
    "log_operation",
]
