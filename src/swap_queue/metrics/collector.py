"""Metrics collector — Prometheus counters, gauges, histograms.

- ``swapq_tasks`` gauge-vec (tasks per status)
- ``swapq_step_outcomes_total`` counter (done / blocked / failed per task type)
- ``swapq_step_duration_seconds`` histogram (per task type)
- ``swapq_resumes_total`` counter (runs launched per trigger: start, signal, manual)
- ``swapq_migration_entries_total`` counter (migrated / skipped / invalid / write_failed)
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

from swap_queue.models.task import TaskStatus

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

_PREFIX = "swapq"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`QueueMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def gauge(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Gauge:
        """Register and return a Gauge."""
        return Gauge(name, doc, labels, registry=self._registry)

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)


class QueueMetrics:
    """High-level queue metrics."""

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._tasks = self._collector.gauge(
            f"{_PREFIX}_tasks",
            "Number of known tasks per status",
            ("status",),
        )
        self._step_outcomes = self._collector.counter(
            f"{_PREFIX}_step_outcomes_total",
            "Step executions by outcome",
            ("task_type", "outcome"),
        )
        self._step_duration = self._collector.histogram(
            f"{_PREFIX}_step_duration_seconds",
            "Duration of step executor calls",
            ("task_type",),
        )
        self._resumes = self._collector.counter(
            f"{_PREFIX}_resumes_total",
            "Task runs launched at start, on a wallet signal or by manual retry",
            ("trigger",),
        )
        self._migration_entries = self._collector.counter(
            f"{_PREFIX}_migration_entries_total",
            "Legacy entries processed by migration",
            ("result",),
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    def set_task_counts(self, statuses: Iterable[TaskStatus]) -> None:
        """Recompute the per-status gauge from the current task statuses."""
        counts = dict.fromkeys(TaskStatus, 0)
        for status in statuses:
            counts[status] += 1
        for status, count in counts.items():
            self._tasks.labels(status=status.value).set(count)

    def step_outcome(self, task_type: str, outcome: str) -> None:
        self._step_outcomes.labels(task_type=task_type, outcome=outcome).inc()

    def resumed(self, trigger: str) -> None:
        self._resumes.labels(trigger=trigger).inc()

    def migration_entry(self, result: str) -> None:
        self._migration_entries.labels(result=result).inc()

    @contextmanager
    def track_step(self, task_type: str) -> Iterator[None]:
        """Track the duration of one step executor call."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._step_duration.labels(task_type=task_type).observe(time.monotonic() - start)
