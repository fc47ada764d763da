"""Prometheus metrics module."""

from sftp_fetcher.metrics.prometheus import MetricsCollector, start_metrics_server

__all__ = ["MetricsCollector", "start_metrics_server"]
