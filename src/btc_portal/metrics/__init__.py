"""Metrics — Prometheus metrics collection and exposure."""

from __future__ import annotations

from btc_portal.metrics.collector import MetricsCollector, PortalMetrics

__all__ = ["MetricsCollector", "PortalMetrics"]
