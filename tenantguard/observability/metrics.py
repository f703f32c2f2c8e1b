"""Prometheus-style metrics collector. Thread-safe, in-memory. No real Prometheus dependency."""

import threading
from typing import Any


class MetricsCollector:
    """
    In-memory registry of counters and latency histograms.
    Access decisions, audit writes, anomaly signals and tamper attempts are
    counted by category; HTTP latency is observed per route.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, float] = {}
        # name -> {"name:label=value" -> count}
        self._counters_by_labels: dict[str, dict[str, float]] = {}
        self._histograms: dict[str, list[float]] = {}

    @staticmethod
    def _label_key(name: str, tenant_id: str | None, category: str | None) -> str | None:
        if tenant_id is not None:
            return f"{name}:tenant={tenant_id}"
        if category is not None:
            return f"{name}:category={category}"
        return None

    def increment(
        self,
        name: str,
        value: float = 1.0,
        *,
        tenant_id: str | None = None,
        category: str | None = None,
    ) -> None:
        """Increment a counter. Optional tenant_id or category label."""
        key = self._label_key(name, tenant_id, category)
        with self._lock:
            if key is None:
                self._counters[name] = self._counters.get(name, 0) + value
                return
            labels = self._counters_by_labels.setdefault(name, {})
            labels[key] = labels.get(key, 0) + value

    def count(
        self,
        name: str,
        *,
        tenant_id: str | None = None,
        category: str | None = None,
    ) -> float:
        """Current value of a counter (0 when never incremented)."""
        key = self._label_key(name, tenant_id, category)
        with self._lock:
            if key is None:
                return self._counters.get(name, 0)
            return self._counters_by_labels.get(name, {}).get(key, 0)

    def observe_latency(
        self,
        name: str,
        latency_ms: float,
        *,
        route: str | None = None,
    ) -> None:
        """Record a latency observation (histogram-style). Optional route label."""
        bucket = name if route is None else f"{name}:route={route}"
        with self._lock:
            self._histograms.setdefault(bucket, []).append(latency_ms)

    def export_metrics(self) -> dict[str, Any]:
        """Export all metrics as a dict (simulated Prometheus-style)."""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "counters_by_labels": {
                    k: dict(v) for k, v in self._counters_by_labels.items()
                },
                "histograms": {
                    k: {"count": len(v), "sum": sum(v)}
                    for k, v in self._histograms.items()
                },
            }

    def reset(self) -> None:
        """Reset all metrics (for tests)."""
        with self._lock:
            self._counters.clear()
            self._counters_by_labels.clear()
            self._histograms.clear()
