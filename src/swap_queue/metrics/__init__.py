"""Metrics — Prometheus metrics collection and exposure."""

from __future__ import annotations

from swap_queue.metrics.collector import MetricsCollector, QueueMetrics

__all__ = ["MetricsCollector", "QueueMetrics"]
