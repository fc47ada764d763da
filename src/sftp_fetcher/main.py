"""Main application entry point."""

import asyncio
import os
import signal
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from sftp_fetcher.config.connections import ConnectionParams, load_connection_params
from sftp_fetcher.config.settings import ConfigError, Settings
from sftp_fetcher.connection.manager import ConnectionManager
from sftp_fetcher.logging import get_logger, setup_logging
from sftp_fetcher.metrics.prometheus import MetricsCollector, start_metrics_server
from sftp_fetcher.runner import FetchJob
from sftp_fetcher.scheduler.cron import CronSchedule, ScheduleParseError
from sftp_fetcher.scheduler.scheduler import Scheduler
from sftp_fetcher.transfer.engine import TransferEngine
from sftp_fetcher.transfer.models import RunResult


logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"


class Application:
    """Main SFTP Fetcher application."""

    def __init__(
        self,
        settings: Settings,
        params: ConnectionParams,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        """Initialize the application.

        Args:
            settings: Application settings.
            params: Connection parameters for the remote host.
            metrics: Optional metrics collector.
        """
        self._settings = settings
        self._params = params
        self._metrics = metrics
        self._schedule: Optional[CronSchedule] = None
        self._scheduler: Optional[Scheduler] = None
        self._job: Optional[FetchJob] = None
        self._dispatcher: Optional[asyncio.Task] = None
        self._shutdown_event = asyncio.Event()

    @property
    def job(self) -> Optional[FetchJob]:
        """Get the scheduled job."""
        return self._job

    @property
    def scheduler(self) -> Optional[Scheduler]:
        """Get the scheduler."""
        return self._scheduler

    def _on_run_started(self) -> None:
        if self._metrics:
            self._metrics.record_run_started()

    def _on_run_finished(self) -> None:
        if self._metrics:
            self._metrics.record_run_finished()

    async def _on_run_result(self, result: RunResult) -> None:
        """Handle a finished run.

        Args:
            result: Run result.
        """
        if self._metrics:
            self._metrics.record_run_completed(result)

    def _on_firing_skipped(self, fire_at: datetime) -> None:
        if self._metrics:
            self._metrics.record_firing_skipped()

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for shutdown."""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda s=sig: self._handle_shutdown(s),
            )

    def _handle_shutdown(self, sig: signal.Signals) -> None:
        logger.info("shutdown_signal_received", signal=sig.name)
        self._shutdown_event.set()

    def initialize(self) -> None:
        """Build application components.

        Raises:
            ScheduleParseError: If the cron expression is invalid.
        """
        # Parse before anything is wired so a bad expression aborts startup.
        self._schedule = CronSchedule(self._params.schedule)

        local_dir = Path(self._settings.transfer.local_dir)
        local_dir.mkdir(parents=True, exist_ok=True)

        self._job = FetchJob(
            params=self._params,
            connection_manager=ConnectionManager(self._settings.ssh),
            engine=TransferEngine(self._settings.transfer),
            local_dir=local_dir,
            on_start=self._on_run_started,
            on_result=self._on_run_result,
            on_finish=self._on_run_finished,
        )

        self._scheduler = Scheduler(
            overlap_policy=self._settings.scheduler.overlap_policy,
            on_skip=self._on_firing_skipped,
        )

        logger.info("application_initialized", local_dir=str(local_dir))

    async def start(self) -> None:
        """Start the scheduler."""
        if self._scheduler is None or self._job is None or self._schedule is None:
            raise RuntimeError("Application not initialized")

        self._dispatcher = self._scheduler.start(self._schedule, self._job.run)

    async def stop(self) -> None:
        """Stop dispatching and cancel runs still in flight."""
        if self._dispatcher is not None:
            self._dispatcher.cancel()
            try:
                await self._dispatcher
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error("dispatcher_failed", error=str(e))
            self._dispatcher = None

        if self._scheduler is not None:
            await self._scheduler.drain()

        logger.info("application_stopped")

    async def run_forever(self) -> None:
        """Run until a shutdown signal arrives."""
        self.initialize()
        await self.start()
        self._setup_signal_handlers()

        try:
            await self._shutdown_event.wait()
        finally:
            await self.stop()


def load_config(config_path: str | Path) -> tuple[Settings, ConnectionParams]:
    """Load settings and connection parameters from one YAML file.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Tuple of (settings, connection parameters).

    Raises:
        ConfigError: If the configuration is missing or invalid.
    """
    settings = Settings.from_yaml(config_path)
    params = load_connection_params(config_path)
    return settings, params


async def main() -> int:
    """Application entry point.

    Returns:
        Exit code.
    """
    config_path = os.getenv("SFTP_FETCHER_CONFIG", DEFAULT_CONFIG_PATH)

    try:
        settings, params = load_config(config_path)
    except ConfigError as e:
        setup_logging()
        logger.error("fatal_error", error_code="CONFIG_ERROR", error=str(e))
        return 1

    setup_logging(
        level=settings.logging.level,
        format=settings.logging.format,
    )

    logger.info(
        "sftp_fetcher_starting",
        version="0.1.0",
        config_path=settings.config_path,
        connection=params.to_dict(),
    )

    metrics = None
    if settings.metrics.enabled:
        metrics = MetricsCollector()
        start_metrics_server(settings.metrics.port)

    app = Application(settings, params, metrics=metrics)

    try:
        await app.run_forever()
        return 0
    except ScheduleParseError as e:
        logger.error("fatal_error", error_code="SCHEDULE_PARSE_ERROR", error=str(e))
        return 1
    except Exception as e:
        logger.exception("fatal_error", error=str(e))
        return 1


def run() -> None:
    """Run the application."""
    exit_code = asyncio.run(main())
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
