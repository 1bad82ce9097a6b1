"""
Unit tests for metrics collection and operation logging.

Tests metrics collection functionality including:
- Thread-safety under concurrent access
- Bounded storage with LRU eviction
- The timed_operation decorator used by every backend
- Logging context (correlation ID, repository context)
"""

import logging
import threading

import pytest

from repository_framework.observability import (ContextualLoggerAdapter,
                                                 MetricsCollector,
                                                 get_correlation_id,
                                                 get_logger,
                                                 get_logging_context,
                                                 get_metrics_collector,
                                                 log_operation,
                                                 record_operation,
                                                 repository_scope,
                                                 set_correlation_id,
                                                 set_repository_context,
                                                 timed_operation)


@pytest.mark.unit
class TestMetricsCollectorThreadSafety:
    """Test thread-safety of metrics collection."""

    def test_concurrent_record_operation(self):
        """Test that concurrent record_operation calls are thread-safe."""
        collector = MetricsCollector()
        num_threads = 10
        operations_per_thread = 100
        barrier = threading.Barrier(num_threads)

        def record_operations(thread_id: int):
            barrier.wait()
            for i in range(operations_per_thread):
                collector.record_operation(
                    "repository.find",
                    duration_ms=10.0 + i,
                    backend=f"Backend{thread_id}",
                )

        threads = [
            threading.Thread(target=record_operations, args=(i,)) for i in range(num_threads)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert collector.get_operation_count("repository.find") == num_threads * operations_per_thread
        assert len(collector.get_metrics()["metrics"]) == num_threads

    def test_concurrent_reads_and_reset(self):
        """Test that readers and reset can run alongside writers."""
        collector = MetricsCollector()
        errors = []

        def worker(thread_id: int):
            try:
                if thread_id == 0:
                    collector.reset()
                elif thread_id % 2:
                    collector.get_summary()
                else:
                    collector.record_operation(f"repository.op_{thread_id}", duration_ms=1.0)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []


@pytest.mark.unit
class TestMetricsCollectorBoundedStorage:
    """Test bounded storage and LRU eviction."""

    def test_max_metrics_limit(self):
        collector = MetricsCollector(max_metrics=5)
        for i in range(8):
            collector.record_operation(f"repository.op_{i}", duration_ms=10.0)

        assert len(collector.get_metrics()["metrics"]) == 5

    def test_lru_eviction_order(self):
        """Test that the least recently used series is evicted first."""
        collector = MetricsCollector(max_metrics=3)
        collector.record_operation("repository.op_0", duration_ms=10.0)
        collector.record_operation("repository.op_1", duration_ms=10.0)
        collector.record_operation("repository.op_2", duration_ms=10.0)

        collector.get_metrics("repository.op_0")
        collector.record_operation("repository.op_3", duration_ms=10.0)

        keys = set(collector.get_metrics()["metrics"])
        assert keys == {"repository.op_0", "repository.op_2", "repository.op_3"}

    def test_no_eviction_on_update(self):
        collector = MetricsCollector(max_metrics=3)
        for i in range(3):
            collector.record_operation(f"repository.op_{i}", duration_ms=10.0)

        collector.record_operation("repository.op_0", duration_ms=20.0)

        metrics = collector.get_metrics()["metrics"]
        assert len(metrics) == 3
        assert metrics["repository.op_0"]["count"] == 2
        assert metrics["repository.op_0"]["avg_duration_ms"] == 15.0


@pytest.mark.unit
class TestMetricsCollectorFunctionality:
    """Test basic metrics collection functionality."""

    def test_record_operation_with_tags(self):
        collector = MetricsCollector()
        collector.record_operation(
            "repository.find", duration_ms=50.0, backend="SqlRepository", entity="Category"
        )

        metrics = collector.get_metrics()["metrics"]
        assert "repository.find[backend=SqlRepository,entity=Category]" in metrics

    def test_error_rate(self):
        collector = MetricsCollector()
        collector.record_operation("repository.create", duration_ms=1.0)
        collector.record_operation("repository.create", duration_ms=1.0, success=False)

        series = collector.get_metrics()["metrics"]["repository.create"]
        assert series["error_count"] == 1
        assert series["error_rate_percent"] == 50.0

    def test_get_summary_aggregates_tags(self):
        collector = MetricsCollector()
        collector.record_operation("repository.find", duration_ms=10.0, backend="A")
        collector.record_operation("repository.find", duration_ms=30.0, backend="B")

        summary = collector.get_summary()["summary"]["repository.find"]
        assert summary["count"] == 2
        assert summary["min_duration_ms"] == 10.0
        assert summary["max_duration_ms"] == 30.0

    def test_global_collector(self):
        assert get_metrics_collector() is get_metrics_collector()
        record_operation("repository.global", duration_ms=10.0)
        assert get_metrics_collector().get_operation_count("repository.global") == 1


class _Repository:
    @timed_operation("repository.find", entity="Category")
    async def find(self, fail: bool = False):
        if fail:
            raise ValueError("boom")
        return ["item"]

    @timed_operation("repository.validate")
    def validate(self):
        return True


@pytest.mark.unit
class TestTimedOperation:
    """Test the decorator used on repository methods."""

    @pytest.mark.asyncio
    async def test_async_success(self):
        assert await _Repository().find() == ["item"]

        metrics = get_metrics_collector().get_metrics("repository.find")["metrics"]
        series = metrics["repository.find[backend=_Repository,entity=Category]"]
        assert series["count"] == 1
        assert series["error_count"] == 0

    @pytest.mark.asyncio
    async def test_async_failure_is_recorded_and_raised(self):
        with pytest.raises(ValueError):
            await _Repository().find(fail=True)

        metrics = get_metrics_collector().get_metrics("repository.find")["metrics"]
        assert metrics["repository.find[backend=_Repository,entity=Category]"]["error_count"] == 1

    def test_sync_function(self):
        assert _Repository().validate() is True
        assert get_metrics_collector().get_operation_count("repository.validate") == 1

    def test_wraps_metadata(self):
        assert _Repository.find.__name__ == "find"

    @pytest.mark.asyncio
    async def test_operation_is_logged(self, caplog):
        caplog.set_level(logging.DEBUG, logger="repository_framework.observability.metrics")
        set_correlation_id("corr-1")

        with pytest.raises(ValueError):
            await _Repository().find(fail=True)

        record = caplog.records[-1]
        assert record.getMessage().startswith("Operation failed: repository.find")
        assert record.correlation_id == "corr-1"
        assert record.backend == "_Repository"
        assert record.success is False


@pytest.mark.unit
class TestLoggingContext:
    """Test correlation IDs and repository context."""

    def test_generated_correlation_id(self):
        correlation_id = set_correlation_id()
        assert correlation_id
        assert get_correlation_id() == correlation_id

    def test_repository_context(self):
        set_repository_context(entity="Category", backend="MongoRepository", collection="c")
        context = get_logging_context()
        assert context["entity"] == "Category"
        assert context["collection"] == "c"
        assert "correlation_id" not in context

    def test_none_values_are_dropped(self):
        set_repository_context(entity="Category")
        assert "backend" not in get_logging_context()

    def test_contextual_logger(self, caplog):
        caplog.set_level(logging.INFO, logger="test.contextual")
        set_correlation_id("corr-2")
        logger = get_logger("test.contextual")

        logger.info("hello", extra={"table": "Category"})

        assert isinstance(logger, ContextualLoggerAdapter)
        record = caplog.records[-1]
        assert record.correlation_id == "corr-2"
        assert record.table == "Category"

    def test_log_operation_level(self, caplog):
        caplog.set_level(logging.INFO, logger="test.operation")
        log_operation(logging.getLogger("test.operation"), "find", level=logging.INFO, count=3)

        record = caplog.records[-1]
        assert record.getMessage() == "Operation: find"
        assert record.count == 3

    def test_repository_scope_restores_outer_context(self):
        set_repository_context(entity="Order", request="r1")

        with repository_scope(backend="SqlRepository"):
            context = get_logging_context()
            assert context["entity"] == "Order"
            assert context["backend"] == "SqlRepository"

        context = get_logging_context()
        assert "backend" not in context
        assert context["request"] == "r1"

    @pytest.mark.asyncio
    async def test_timed_operation_sets_repository_scope(self):
        class _CategoryRepository:
            entity_name = "Category"

            @timed_operation("repository.get_by_id")
            async def get_by_id(self, id):
                return get_logging_context()

        context = await _CategoryRepository().get_by_id(1)

        assert context["entity"] == "Category"
        assert context["backend"] == "_CategoryRepository"
        assert "entity" not in get_logging_context()
