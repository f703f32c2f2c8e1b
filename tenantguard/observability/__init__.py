"""Observability layer: in-process metrics. No external SaaS."""

from tenantguard.observability.metrics import MetricsCollector

__all__ = [
    "MetricsCollector",
]
