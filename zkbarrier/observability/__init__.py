"""
Observability module: Structured logging and in-process metrics.
"""

from zkbarrier.observability.metrics import (
    BarrierMetrics,
    Counter,
    Gauge,
    Histogram,
    MetricsCollector,
)
from zkbarrier.observability.logging import StructuredLogger, LogLevel, setup_logging

__all__ = [
    "BarrierMetrics",
    "Counter",
    "Gauge",
    "Histogram",
    "MetricsCollector",
    "StructuredLogger",
    "LogLevel",
    "setup_logging",
]
