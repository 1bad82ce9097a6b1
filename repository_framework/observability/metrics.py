"""
Metrics collection for REPOSITORY_FRAMEWORK.

Records the duration and outcome of repository operations, tagged by backend.
"""

import functools
import inspect
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..constants import DEFAULT_MAX_METRICS
from .logging import log_operation, repository_scope

logger = logging.getLogger(__name__)


@dataclass
class OperationMetrics:
    """Metrics for a single operation series."""

    operation_name: str
    count: int = 0
    total_duration_ms: float = 0.0
    min_duration_ms: float = float("inf")
    max_duration_ms: float = 0.0
    error_count: int = 0
    last_execution: datetime | None = None

    @property
    def avg_duration_ms(self) -> float:
        return self.total_duration_ms / self.count if self.count > 0 else 0.0

    @property
    def error_rate(self) -> float:
        """Error rate as a percentage."""
        return (self.error_count / self.count * 100) if self.count > 0 else 0.0

    def record(self, duration_ms: float, success: bool = True) -> None:
        self.count += 1
        self.total_duration_ms += duration_ms
        self.min_duration_ms = min(self.min_duration_ms, duration_ms)
        self.max_duration_ms = max(self.max_duration_ms, duration_ms)
        if not success:
            self.error_count += 1
        self.last_execution = datetime.now()

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation_name,
            "count": self.count,
            "avg_duration_ms": round(self.avg_duration_ms, 2),
            "min_duration_ms": (
                round(self.min_duration_ms, 2) if self.min_duration_ms != float("inf") else 0.0
            ),
            "max_duration_ms": round(self.max_duration_ms, 2),
            "error_count": self.error_count,
            "error_rate_percent": round(self.error_rate, 2),
            "last_execution": (self.last_execution.isoformat() if self.last_execution else None),
        }


class MetricsCollector:
    """
    Thread-safe collector for repository operation metrics.

    Each (operation, tags) combination is one series. The number of series is
    bounded; the least recently used series is evicted first.
    """

    def __init__(self, max_metrics: int = DEFAULT_MAX_METRICS):
        self._metrics: OrderedDict[str, OperationMetrics] = OrderedDict()
        self._lock = threading.Lock()
        self._max_metrics = max_metrics

    @staticmethod
    def _series_key(operation_name: str, tags: dict[str, Any]) -> str:
        if not tags:
            return operation_name
        tag_str = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
        return f"{operation_name}[{tag_str}]"

    def record_operation(
        self, operation_name: str, duration_ms: float, success: bool = True, **tags: Any
    ) -> None:
        """
        Record an operation execution.

        Args:
            operation_name: Name of the operation (e.g., "repository.find")
            duration_ms: Duration in milliseconds
            success: Whether the operation succeeded
            **tags: Additional tags (backend, entity, ...)
        """
        key = self._series_key(operation_name, tags)

        with self._lock:
            series = self._metrics.get(key)
            if series is None:
                if len(self._metrics) >= self._max_metrics:
                    self._metrics.popitem(last=False)
                series = self._metrics[key] = OperationMetrics(operation_name=operation_name)
            else:
                self._metrics.move_to_end(key)
            series.record(duration_ms, success)

    def get_metrics(self, operation_name: str | None = None) -> dict[str, Any]:
        """
        Get metrics, optionally limited to one operation name prefix.

        Returns:
            Dictionary with a timestamp, the series and the number of series
        """
        with self._lock:
            keys = [
                k for k in self._metrics if operation_name is None or k.startswith(operation_name)
            ]
            metrics = {k: self._metrics[k].to_dict() for k in keys}
            for key in keys:
                self._metrics.move_to_end(key)
            total_operations = len(self._metrics)

        return {
            "timestamp": datetime.now().isoformat(),
            "metrics": metrics,
            "total_operations": total_operations,
        }

    def get_summary(self) -> dict[str, Any]:
        """Aggregate all series by operation name (tags dropped)."""
        with self._lock:
            aggregated: dict[str, OperationMetrics] = {}
            for metric in self._metrics.values():
                agg = aggregated.setdefault(
                    metric.operation_name, OperationMetrics(operation_name=metric.operation_name)
                )
                agg.count += metric.count
                agg.total_duration_ms += metric.total_duration_ms
                agg.min_duration_ms = min(agg.min_duration_ms, metric.min_duration_ms)
                agg.max_duration_ms = max(agg.max_duration_ms, metric.max_duration_ms)
                agg.error_count += metric.error_count
                if metric.last_execution and (
                    not agg.last_execution or metric.last_execution > agg.last_execution
                ):
                    agg.last_execution = metric.last_execution
            total_operations = len(self._metrics)

        return {
            "timestamp": datetime.now().isoformat(),
            "total_operations": total_operations,
            "summary": {name: m.to_dict() for name, m in aggregated.items()},
        }

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()

    def get_operation_count(self, operation_name: str) -> int:
        """Total executions of an operation across all tag combinations."""
        with self._lock:
            return sum(
                m.count for m in self._metrics.values() if m.operation_name == operation_name
            )


_metrics_collector: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get or create the global metrics collector."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector


def record_operation(
    operation_name: str, duration_ms: float, success: bool = True, **tags: Any
) -> None:
    """Record an operation in the global metrics collector."""
    get_metrics_collector().record_operation(operation_name, duration_ms, success, **tags)


def _scope_of(args: tuple, tags: dict[str, Any]) -> dict[str, Any]:
    """Repository context for a bound method call: its entity and backend."""
    scope = dict(tags)
    if args:
        repository = args[0]
        scope.setdefault("backend", type(repository).__name__)
        entity = getattr(repository, "entity_name", None)
        if isinstance(entity, str):
            scope.setdefault("entity", entity)
    return scope


def timed_operation(operation_name: str, **tags: Any):
    """
    Decorator that times a repository method, records it and logs it at DEBUG.

    The repository class name is added as the ``backend`` tag. While the
    method runs, the repository context holds its entity and backend, so
    log records emitted inside carry them. Exceptions are recorded as
    failures and re-raised.

    Usage:
        class SqlRepository(Repository[T]):
            @timed_operation("repository.find")
            async def find(self, ...):
                ...
    """

    def decorator(func: Callable) -> Callable:
        def _record(args: tuple, started: float, success: bool) -> None:
            series_tags = dict(tags)
            if args:
                series_tags.setdefault("backend", type(args[0]).__name__)
            duration_ms = (time.perf_counter() - started) * 1000
            record_operation(operation_name, duration_ms, success, **series_tags)
            log_operation(logger, operation_name, success=success, duration_ms=duration_ms)

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                started = time.perf_counter()
                success = True
                with repository_scope(**_scope_of(args, tags)):
                    try:
                        return await func(*args, **kwargs)
                    except Exception:
                        success = False
                        raise
                    finally:
                        _record(args, started, success)

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            started = time.perf_counter()
            success = True
            with repository_scope(**_scope_of(args, tags)):
                try:
                    return func(*args, **kwargs)
                except Exception:
                    success = False
                    raise
                finally:
                    _record(args, started, success)

        return sync_wrapper

    return decorator
