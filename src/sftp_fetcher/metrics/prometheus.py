"""Prometheus metrics collector."""

from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
)
import structlog

from sftp_fetcher.transfer.models import RunResult


logger = structlog.get_logger(__name__)


class MetricsCollector:
    """Collector for Prometheus metrics."""

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        """Initialize metrics.

        Args:
            registry: Registry to register with. Defaults to the global one.
        """
        self.registry = registry if registry is not None else REGISTRY

        self.info = Info(
            "sftp_fetcher",
            "SFTP Fetcher application information",
            registry=self.registry,
        )
        self.info.info({
            "version": "0.1.0",
        })

        # Run counters
        self.runs_total = Counter(
            "sftp_runs_total",
            "Total number of scheduled runs",
            ["result"],  # success, file_failed, connection_failed
            registry=self.registry,
        )

        self.runs_in_progress = Gauge(
            "sftp_runs_in_progress",
            "Number of runs currently executing",
            registry=self.registry,
        )

        self.firings_skipped = Counter(
            "sftp_firings_skipped_total",
            "Firings dropped because a previous run was still in flight",
            registry=self.registry,
        )

        self.run_duration = Histogram(
            "sftp_run_duration_seconds",
            "Run duration in seconds",
            ["result"],
            buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
            registry=self.registry,
        )

        # File metrics
        self.files_total = Counter(
            "sftp_files_total",
            "Total number of attempted file transfers",
            ["status"],
            registry=self.registry,
        )

        self.files_skipped = Counter(
            "sftp_files_skipped_total",
            "Files not attempted because an earlier file failed",
            registry=self.registry,
        )

        self.transfer_bytes = Counter(
            "sftp_transfer_bytes_total",
            "Total bytes downloaded",
            registry=self.registry,
        )

        # Error metrics
        self.errors_total = Counter(
            "sftp_errors_total",
            "Total number of errors",
            ["error_code"],
            registry=self.registry,
        )

    def record_run_started(self) -> None:
        """Record a run has started."""
        self.runs_in_progress.inc()

    def record_run_finished(self) -> None:
        """Record a run has ended, whether or not it produced a result."""
        self.runs_in_progress.dec()

    def record_run_completed(self, result: RunResult) -> None:
        """Record a run result and its per-file outcomes.

        Args:
            result: The run result.
        """
        if result.is_connection_failure:
            label = "connection_failed"
            error_code = getattr(result.connection_error, "error_code", "CONNECTION_ERROR")
            self.errors_total.labels(error_code=error_code).inc()
        elif result.succeeded:
            label = "success"
        else:
            label = "file_failed"

        self.runs_total.labels(result=label).inc()
        self.run_duration.labels(result=label).observe(result.duration_ms / 1000)

        for outcome in result.outcomes:
            self.files_total.labels(status=outcome.status.value).inc()
            if not outcome.succeeded:
                self.errors_total.labels(error_code=outcome.status.name).inc()

        if result.skipped:
            self.files_skipped.inc(result.skipped)
        if result.bytes_transferred > 0:
            self.transfer_bytes.inc(result.bytes_transferred)

    def record_firing_skipped(self) -> None:
        """Record a firing dropped by the overlap policy."""
        self.firings_skipped.inc()


def start_metrics_server(port: int = 9090, registry: Optional[CollectorRegistry] = None) -> None:
    """Start the Prometheus metrics HTTP server.

    Args:
        port: Port to listen on.
        registry: Registry to expose. Defaults to the global one.
    """
    start_http_server(port, registry=registry if registry is not None else REGISTRY)
    logger.info("metrics_server_started", port=port)
