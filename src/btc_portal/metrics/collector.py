"""Metrics collector — Prometheus counters and histograms.

- ``btc_portal_registrations_total``        counter by outcome
- ``btc_portal_rejections_total``           counter by rejection reason
- ``btc_portal_history_duration_seconds``   reconciliation latency
- ``btc_portal_dropped_outputs_total``      outputs left out of a history
"""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Histogram

_PREFIX = "btc_portal"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`PortalMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)


class PortalMetrics:
    """High-level portal metrics."""

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._registrations = self._collector.counter(
            f"{_PREFIX}_registrations_total",
            "Deposit registrations by outcome",
            ("outcome",),
        )
        self._rejections = self._collector.counter(
            f"{_PREFIX}_rejections_total",
            "Rejected shielding requests by reason",
            ("reason",),
        )
        self._history = self._collector.histogram(
            f"{_PREFIX}_history_duration_seconds",
            "Duration of deposit history reconciliation",
        )
        self._dropped = self._collector.counter(
            f"{_PREFIX}_dropped_outputs_total",
            "Unspent outputs dropped from a history because their fetch failed",
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    def record_registration(self, outcome: str) -> None:
        self._registrations.labels(outcome=outcome).inc()

    def record_rejection(self, reason: str) -> None:
        self._rejections.labels(reason=reason).inc()

    def observe_history(self, seconds: float, *, dropped: int = 0) -> None:
        """Record one reconciliation and how many outputs it dropped."""
        self._history.observe(seconds)
        if dropped:
            self._dropped.inc(dropped)

