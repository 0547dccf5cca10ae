"""
Metrics Collector: Prometheus-Compatible In-Process Metrics

Counters, gauges and histograms with label dimensions, plus the
BarrierMetrics bundle the barrier components record into.

Nothing here serves metrics over the network; export_prometheus()
returns the text exposition for whoever wants to print or scrape it.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Sequence


@dataclass(frozen=True)
class MetricLabels:
    """Immutable label set for metric dimensions."""
    labels: tuple[tuple[str, str], ...]

    @classmethod
    def from_dict(cls, d: dict[str, str]) -> MetricLabels:
        return cls(labels=tuple(sorted(d.items())))

    def to_dict(self) -> dict[str, str]:
        return dict(self.labels)


class _Metric:
    __slots__ = ("_name", "_help", "_label_names", "_lock")

    def __init__(self, name: str, label_names: Sequence[str], help_text: str) -> None:
        self._name = name
        self._help = help_text
        self._label_names = tuple(label_names)
        self._lock = threading.Lock()

    def _make_key(self, labels: dict[str, str]) -> MetricLabels:
        filtered = {k: labels.get(k, "") for k in self._label_names}
        return MetricLabels.from_dict(filtered)

    @property
    def name(self) -> str:
        return self._name

    @property
    def help_text(self) -> str:
        return self._help


class Counter(_Metric):
    """
    Monotonically increasing counter metric.

    Usage:
        reads = Counter("barrier_payload_reads_total", ["outcome"])
        reads.inc(outcome="ok")
    """

    __slots__ = ("_values",)

    def __init__(
        self,
        name: str,
        label_names: Sequence[str] = (),
        help_text: str = "",
    ) -> None:
        super().__init__(name, label_names, help_text)
        self._values: dict[MetricLabels, float] = defaultdict(float)

    def inc(self, value: float = 1.0, **labels: str) -> None:
        if value < 0:
            raise ValueError("Counter can only increase")
        key = self._make_key(labels)
        with self._lock:
            self._values[key] += value

    def get(self, **labels: str) -> float:
        key = self._make_key(labels)
        with self._lock:
            return self._values.get(key, 0.0)

    def collect(self) -> Iterator[tuple[dict[str, str], float]]:
        with self._lock:
            items = list(self._values.items())
        for key, value in items:
            yield (key.to_dict(), value)


class Gauge(_Metric):
    """Gauge metric that can go up and down."""

    __slots__ = ("_values",)

    def __init__(
        self,
        name: str,
        label_names: Sequence[str] = (),
        help_text: str = "",
    ) -> None:
        super().__init__(name, label_names, help_text)
        self._values: dict[MetricLabels, float] = {}

    def set(self, value: float, **labels: str) -> None:
        key = self._make_key(labels)
        with self._lock:
            self._values[key] = value

    def get(self, **labels: str) -> float:
        key = self._make_key(labels)
        with self._lock:
            return self._values.get(key, 0.0)

    def collect(self) -> Iterator[tuple[dict[str, str], float]]:
        with self._lock:
            items = list(self._values.items())
        for key, value in items:
            yield (key.to_dict(), value)


class Histogram(_Metric):
    """
    Histogram with cumulative buckets.

    Usage:
        wait = Histogram("barrier_wait_seconds")
        with wait.time():
            await session.wait()
    """

    __slots__ = ("_buckets", "_bucket_counts", "_sums", "_counts")

    DEFAULT_BUCKETS = (
        0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0,
        30.0, 60.0, 300.0, float("inf"),
    )

    def __init__(
        self,
        name: str,
        label_names: Sequence[str] = (),
        help_text: str = "",
        buckets: Optional[Sequence[float]] = None,
    ) -> None:
        super().__init__(name, label_names, help_text)
        self._buckets = tuple(sorted(buckets or self.DEFAULT_BUCKETS))
        if self._buckets[-1] != float("inf"):
            self._buckets = self._buckets + (float("inf"),)
        self._bucket_counts: dict[MetricLabels, list[int]] = {}
        self._sums: dict[MetricLabels, float] = defaultdict(float)
        self._counts: dict[MetricLabels, int] = defaultdict(int)

    def observe(self, value: float, **labels: str) -> None:
        key = self._make_key(labels)
        with self._lock:
            counts = self._bucket_counts.setdefault(key, [0] * len(self._buckets))
            for i, bound in enumerate(self._buckets):
                if value <= bound:
                    counts[i] += 1
            self._sums[key] += value
            self._counts[key] += 1

    def count(self, **labels: str) -> int:
        key = self._make_key(labels)
        with self._lock:
            return self._counts.get(key, 0)

    def collect(self) -> Iterator[dict[str, Any]]:
        with self._lock:
            snapshot = [
                (key, list(counts), self._sums[key], self._counts[key])
                for key, counts in self._bucket_counts.items()
            ]
        for key, counts, total, count in snapshot:
            yield {
                "labels": key.to_dict(),
                "buckets": list(zip(self._buckets, counts)),
                "sum": total,
                "count": count,
            }


class MetricsCollector:
    """
    Central registry for all metrics.

    Usage:
        collector = MetricsCollector()
        listings = collector.counter("barrier_listings_total")
        print(collector.export_prometheus())
    """

    __slots__ = ("_counters", "_gauges", "_histograms", "_lock")

    _instance: Optional[MetricsCollector] = None

    def __init__(self) -> None:
        self._counters: dict[str, Counter] = {}
        self._gauges: dict[str, Gauge] = {}
        self._histograms: dict[str, Histogram] = {}
        self._lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> MetricsCollector:
        """Get process-wide instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def counter(
        self,
        name: str,
        label_names: Sequence[str] = (),
        help_text: str = "",
    ) -> Counter:
        with self._lock:
            if name not in self._counters:
                self._counters[name] = Counter(name, label_names, help_text)
            return self._counters[name]

    def gauge(
        self,
        name: str,
        label_names: Sequence[str] = (),
        help_text: str = "",
    ) -> Gauge:
        with self._lock:
            if name not in self._gauges:
                self._gauges[name] = Gauge(name, label_names, help_text)
            return self._gauges[name]

    def histogram(
        self,
        name: str,
        label_names: Sequence[str] = (),
        help_text: str = "",
        buckets: Optional[Sequence[float]] = None,
    ) -> Histogram:
        with self._lock:
            if name not in self._histograms:
                self._histograms[name] = Histogram(name, label_names, help_text, buckets)
            return self._histograms[name]

    def export_prometheus(self) -> str:
        """Export all metrics in Prometheus text format."""
        lines: list[str] = []

        for name, counter in self._counters.items():
            lines.extend(self._header(counter, "counter"))
            for labels, value in counter.collect():
                lines.append(f"{name}{self._format_labels(labels)} {value}")

        for name, gauge in self._gauges.items():
            lines.extend(self._header(gauge, "gauge"))
            for labels, value in gauge.collect():
                lines.append(f"{name}{self._format_labels(labels)} {value}")

        for name, histogram in self._histograms.items():
            lines.extend(self._header(histogram, "histogram"))
            for data in histogram.collect():
                labels = data["labels"]
                for bound, count in data["buckets"]:
                    le = "+Inf" if bound == float("inf") else str(bound)
                    bucket_labels = self._format_labels({**labels, "le": le})
                    lines.append(f"{name}_bucket{bucket_labels} {count}")
                label_str = self._format_labels(labels)
                lines.append(f"{name}_sum{label_str} {data['sum']}")
                lines.append(f"{name}_count{label_str} {data['count']}")

        return "\n".join(lines)

    @staticmethod
    def _header(metric: _Metric, kind: str) -> list[str]:
        lines = []
        if metric.help_text:
            lines.append(f"# HELP {metric.name} {metric.help_text}")
        lines.append(f"# TYPE {metric.name} {kind}")
        return lines

    @staticmethod
    def _format_labels(labels: dict[str, str]) -> str:
        if not labels:
            return ""
        pairs = [f'{k}="{v}"' for k, v in sorted(labels.items())]
        return "{" + ",".join(pairs) + "}"


class BarrierMetrics:
    """
    The metrics one barrier session records.

    Created per session from a collector so tests can use a fresh
    MetricsCollector and assert on exact counts.
    """

    __slots__ = (
        "listings", "rearms", "stale_notifications",
        "payload_reads", "observed_children", "wait_seconds",
    )

    def __init__(self, collector: Optional[MetricsCollector] = None) -> None:
        collector = collector or MetricsCollector.get_instance()
        self.listings = collector.counter(
            "barrier_listings_total",
            help_text="Children listings issued",
        )
        self.rearms = collector.counter(
            "barrier_watch_rearms_total",
            help_text="Watches re-armed after a listing below target",
        )
        self.stale_notifications = collector.counter(
            "barrier_stale_notifications_total",
            help_text="Watch notifications ignored after the barrier resolved",
        )
        self.payload_reads = collector.counter(
            "barrier_payload_reads_total",
            ["outcome"],
            help_text="Participant payload reads by outcome",
        )
        self.observed_children = collector.gauge(
            "barrier_observed_children",
            help_text="Children seen in the latest listing",
        )
        self.wait_seconds = collector.histogram(
            "barrier_wait_seconds",
            help_text="Time from registration to barrier pass",
        )
