"""Process-local counters, gauges and latency summaries for the event pipeline."""

from __future__ import annotations

import math
import re
import threading
import time
from collections import defaultdict, deque
from contextlib import contextmanager
from typing import Deque, Dict, Iterator, List, MutableMapping

_METRIC_SANITIZE_RE = re.compile(r"[^a-zA-Z0-9_:]")
SUMMARY_QUANTILES = (0.5, 0.9, 0.99)


def _sanitize_metric_name(name: str) -> str:
    """Return a Prometheus-safe metric name."""

    sanitized = _METRIC_SANITIZE_RE.sub("_", name)
    if not sanitized:
        return "_"
    if sanitized[0].isdigit():
        sanitized = f"_{sanitized}"
    return sanitized


def _quantile(ordered: List[float], q: float) -> float:
    index = max(int(math.ceil(q * len(ordered))) - 1, 0)
    return ordered[min(index, len(ordered) - 1)]


class MetricsRegistry:
    """Thread-safe store keyed by dotted names (``events.SyncEvent.applied``).

    Observations keep only the most recent ``max_samples`` values per name, so
    summaries describe recent behaviour of a long replay.
    """

    def __init__(self, *, namespace: str = "", max_samples: int = 1024) -> None:
        self._namespace = namespace
        self._lock = threading.RLock()
        self._counters: MutableMapping[str, float] = defaultdict(float)
        self._gauges: Dict[str, float] = {}
        self._samples: MutableMapping[str, Deque[float]] = defaultdict(lambda: deque(maxlen=max_samples))

    def increment(self, name: str, amount: float = 1.0) -> None:
        with self._lock:
            self._counters[name] += amount

    def get(self, name: str) -> float:
        with self._lock:
            return self._counters.get(name, 0.0)

    def gauge(self, name: str, value: float) -> None:
        with self._lock:
            self._gauges[name] = float(value)

    def get_gauge(self, name: str) -> float:
        with self._lock:
            return self._gauges.get(name, 0.0)

    def observe(self, name: str, value: float) -> None:
        with self._lock:
            self._samples[name].append(float(value))

    @contextmanager
    def timer(self, name: str) -> Iterator[None]:
        """Observe the wall-clock seconds spent inside the block under ``name``."""

        started = time.perf_counter()
        try:
            yield
        finally:
            self.observe(name, time.perf_counter() - started)

    def summary(self, name: str) -> Dict[str, float]:
        with self._lock:
            ordered = sorted(self._samples.get(name, ()))
        if not ordered:
            return {}
        stats = {"count": float(len(ordered)), "sum": math.fsum(ordered)}
        for q in SUMMARY_QUANTILES:
            stats[f"p{round(q * 100)}"] = _quantile(ordered, q)
        return stats

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            counters = dict(self._counters)
            gauges = dict(self._gauges)
            names = list(self._samples)
        return {
            "counters": counters,
            "gauges": gauges,
            "histograms": {name: self.summary(name) for name in names},
        }

    def export_prometheus(self) -> str:
        """Render the registry in the Prometheus text exposition format."""

        snap = self.snapshot()
        lines: List[str] = []
        for kind, values in (("counter", snap["counters"]), ("gauge", snap["gauges"])):
            for name in sorted(values):
                metric = self._metric_name(name)
                lines.append(f"# TYPE {metric} {kind}")
                lines.append(f"{metric} {values[name]}")
        for name in sorted(snap["histograms"]):
            stats = snap["histograms"][name]
            if not stats:
                continue
            metric = self._metric_name(name)
            lines.append(f"# TYPE {metric} summary")
            for q in SUMMARY_QUANTILES:
                lines.append(f'{metric}{{quantile="{q}"}} {stats[f"p{round(q * 100)}"]}')
            lines.append(f"{metric}_sum {stats['sum']}")
            lines.append(f"{metric}_count {stats['count']}")
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._samples.clear()

    def _metric_name(self, name: str) -> str:
        prefix = f"{self._namespace}_" if self._namespace else ""
        return _sanitize_metric_name(prefix + name)


METRICS = MetricsRegistry()


__all__ = ["METRICS", "MetricsRegistry"]
