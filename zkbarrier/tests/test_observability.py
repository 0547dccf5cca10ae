"""
Unit Tests: Logging and Metrics

Tests:
    - JSON and console formatting with session context fields
    - Counter, gauge and histogram bookkeeping
    - Prometheus text export
"""

import io
import json
import logging

import pytest

from zkbarrier.observability.logging import (
    ConsoleFormatter,
    JsonFormatter,
    LogLevel,
    StructuredLogger,
)
from zkbarrier.observability.metrics import BarrierMetrics, MetricsCollector


@pytest.fixture
def captured_logger():
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    logger = logging.getLogger("zkbarrier.tests.captured")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    yield StructuredLogger(logger.name), handler, stream
    logger.removeHandler(handler)


class TestLogging:
    """Tests for structured log output."""

    def test_json_includes_fields_and_context(self, captured_logger):
        log, handler, stream = captured_logger
        handler.setFormatter(JsonFormatter())

        with log.context(barrier_path="/barrier"):
            log.info("Waiting for participants", ready=2, target=5)
        log.info("Outside")

        inside, outside = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert inside["message"] == "Waiting for participants"
        assert inside["level"] == "INFO"
        assert inside["barrier_path"] == "/barrier"
        assert inside["ready"] == 2
        assert "barrier_path" not in outside

    def test_console_appends_pairs(self, captured_logger):
        log, handler, stream = captured_logger
        handler.setFormatter(ConsoleFormatter())
        log.with_extra(node="participant-0000000001").warning("Suspended")
        line = stream.getvalue()
        assert "Suspended" in line
        assert "node=participant-0000000001" in line

    def test_parse_level(self):
        assert LogLevel.parse("debug") is LogLevel.DEBUG
        with pytest.raises(ValueError):
            LogLevel.parse("verbose")


class TestMetrics:
    """Tests for metric bookkeeping and export."""

    def test_counter_labels(self):
        metrics = BarrierMetrics(MetricsCollector())
        metrics.payload_reads.inc(outcome="ok")
        metrics.payload_reads.inc(outcome="ok")
        metrics.payload_reads.inc(outcome="error")
        assert metrics.payload_reads.get(outcome="ok") == 2
        assert metrics.payload_reads.get(outcome="error") == 1

    def test_gauge_and_histogram(self):
        metrics = BarrierMetrics(MetricsCollector())
        metrics.observed_children.set(3)
        metrics.wait_seconds.observe(0.2)
        assert metrics.observed_children.get() == 3
        assert metrics.wait_seconds.count() == 1

    def test_shared_collector_returns_same_metric(self):
        collector = MetricsCollector()
        assert BarrierMetrics(collector).listings is BarrierMetrics(collector).listings

    def test_prometheus_export(self):
        collector = MetricsCollector()
        metrics = BarrierMetrics(collector)
        metrics.listings.inc()
        metrics.payload_reads.inc(outcome="ok")
        metrics.wait_seconds.observe(0.2)

        text = collector.export_prometheus()
        assert "# TYPE barrier_listings_total counter" in text
        assert "barrier_listings_total 1.0" in text
        assert 'barrier_payload_reads_total{outcome="ok"} 1.0' in text
        assert 'barrier_wait_seconds_bucket{le="0.5"} 1' in text
        assert 'barrier_wait_seconds_bucket{le="0.1"} 0' in text
        assert "barrier_wait_seconds_count 1" in text
