"""Metrics collection for the linking protocol."""

from __future__ import annotations

import threading
from collections import defaultdict


def _labels_str(label_tuple: tuple) -> str:
    return ",".join(f'{k}="{v}"' for k, v in label_tuple)


class MetricsCollector:
    """
    Collect and aggregate protocol metrics.

    Example:
        ```python
        metrics = MetricsCollector()
        metrics.counter("links_created_total", labels={"path": "ceremony"}).inc()
        metrics.histogram("link_operation_duration_ms").observe(12.5)
        text = metrics.export_prometheus()
        ```
    """

    def __init__(self) -> None:
        self._counters: dict[str, dict[tuple, float]] = defaultdict(lambda: defaultdict(float))
        self._gauges: dict[str, dict[tuple, float]] = defaultdict(dict)
        self._histograms: dict[str, dict[tuple, list[float]]] = defaultdict(lambda: defaultdict(list))

        self._lock = threading.Lock()

    def counter(self, name: str, labels: dict[str, str] | None = None) -> Counter:
        """Get or create a counter metric."""
        return Counter(name, labels or {}, self)

    def gauge(self, name: str, labels: dict[str, str] | None = None) -> Gauge:
        """Get or create a gauge metric."""
        return Gauge(name, labels or {}, self)

    def histogram(self, name: str, labels: dict[str, str] | None = None) -> Histogram:
        """Get or create a histogram metric."""
        return Histogram(name, labels or {}, self)

    def value(self, name: str, labels: dict[str, str] | None = None) -> float:
        """Current value of a counter or gauge (0 if never recorded)."""
        label_tuple = tuple(sorted((labels or {}).items()))
        with self._lock:
            if name in self._counters:
                return self._counters[name].get(label_tuple, 0.0)
            return self._gauges.get(name, {}).get(label_tuple, 0.0)

    def _inc_counter(self, name: str, labels: dict[str, str], value: float = 1) -> None:
        label_tuple = tuple(sorted(labels.items()))
        with self._lock:
            self._counters[name][label_tuple] += value

    def _set_gauge(self, name: str, labels: dict[str, str], value: float) -> None:
        label_tuple = tuple(sorted(labels.items()))
        with self._lock:
            self._gauges[name][label_tuple] = value

    def _observe_histogram(self, name: str, labels: dict[str, str], value: float) -> None:
        label_tuple = tuple(sorted(labels.items()))
        with self._lock:
            self._histograms[name][label_tuple].append(value)

    def export_prometheus(self) -> str:
        """Export metrics in Prometheus text format."""
        lines = []

        with self._lock:
            for kind, table in (("counter", self._counters), ("gauge", self._gauges)):
                for name, values in table.items():
                    lines.append(f"# TYPE {name} {kind}")
                    for label_tuple, value in values.items():
                        labels_str = _labels_str(label_tuple)
                        if labels_str:
                            lines.append(f"{name}{{{labels_str}}} {value}")
                        else:
                            lines.append(f"{name} {value}")

            # Histograms (count and sum only)
            for name, values in self._histograms.items():
                lines.append(f"# TYPE {name} histogram")
                for label_tuple, observations in values.items():
                    labels_str = _labels_str(label_tuple)
                    suffix = f"{{{labels_str}}}" if labels_str else ""
                    lines.append(f"{name}_count{suffix} {len(observations)}")
                    lines.append(f"{name}_sum{suffix} {sum(observations)}")

        return "\n".join(lines) + "\n"


class Counter:
    """Counter metric."""

    def __init__(self, name: str, labels: dict[str, str], collector: MetricsCollector) -> None:
        self.name = name
        self.labels = labels
        self._collector = collector

    def inc(self, value: float = 1) -> None:
        self._collector._inc_counter(self.name, self.labels, value)


class Gauge:
    """Gauge metric."""

    def __init__(self, name: str, labels: dict[str, str], collector: MetricsCollector) -> None:
        self.name = name
        self.labels = labels
        self._collector = collector

    def set(self, value: float) -> None:
        self._collector._set_gauge(self.name, self.labels, value)


class Histogram:
    """Histogram metric."""

    def __init__(self, name: str, labels: dict[str, str], collector: MetricsCollector) -> None:
        self.name = name
        self.labels = labels
        self._collector = collector

    def observe(self, value: float) -> None:
        self._collector._observe_histogram(self.name, self.labels, value)
