"""One end-to-end run: connect, transfer, disconnect."""

import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Optional

import structlog

from sftp_fetcher.config.connections import ConnectionParams
from sftp_fetcher.connection.manager import ConnectionManager, SessionError
from sftp_fetcher.transfer.engine import TransferEngine
from sftp_fetcher.transfer.models import RunResult


logger = structlog.get_logger(__name__)


# Type aliases for run lifecycle callbacks
StartCallback = Callable[[], None]
FinishCallback = Callable[[], None]
ResultCallback = Callable[[RunResult], Awaitable[None]]


class FetchJob:
    """The job fired by the scheduler.

    Each call to :meth:`run` opens its own session, so overlapping runs
    never share one.
    """

    def __init__(
        self,
        params: ConnectionParams,
        connection_manager: ConnectionManager,
        engine: TransferEngine,
        local_dir: str | Path,
        on_start: Optional[StartCallback] = None,
        on_result: Optional[ResultCallback] = None,
        on_finish: Optional[FinishCallback] = None,
    ) -> None:
        """Initialize the job.

        Args:
            params: Connection parameters, read-only.
            connection_manager: Opens SFTP sessions.
            engine: Copies the files.
            local_dir: Destination directory.
            on_start: Optional callback invoked when a run begins.
            on_result: Optional callback for every run that produced a result.
            on_finish: Optional callback invoked when a run ends for any
                reason, including cancellation.
        """
        self._params = params
        self._connections = connection_manager
        self._engine = engine
        self._local_dir = Path(local_dir)
        self._on_start = on_start
        self._on_result = on_result
        self._on_finish = on_finish

    async def _execute(self, log: structlog.stdlib.BoundLogger, started_at: datetime) -> RunResult:
        if not self._params.remote_files:
            log.info("run_skipped_no_files")
            return RunResult(started_at=started_at, finished_at=datetime.now(timezone.utc))

        try:
            async with self._connections.connect(self._params) as session:
                result = await self._engine.run(
                    session,
                    self._params.remote_files,
                    self._local_dir,
                )
        except SessionError as e:
            log.error("run_connection_failed", error_code=e.error_code, error=str(e))
            return RunResult.connection_failure(e, started_at=started_at)

        result.started_at = started_at
        log.info(
            "run_completed",
            succeeded=result.succeeded,
            attempted=len(result.outcomes),
            failed=len(result.failures),
            skipped=result.skipped,
            bytes_transferred=result.bytes_transferred,
            duration_ms=result.duration_ms,
        )
        return result

    async def run(self) -> RunResult:
        """Execute one run.

        Returns:
            The run result. Connection failures are reported in the
            result rather than raised.
        """
        run_id = uuid.uuid4().hex[:8]
        log = logger.bind(run_id=run_id, host=self._params.host)
        started_at = datetime.now(timezone.utc)
        log.info("run_started", files=len(self._params.remote_files))

        if self._on_start:
            self._on_start()

        try:
            result = await self._execute(log, started_at)
            if self._on_result:
                await self._on_result(result)
        finally:
            if self._on_finish:
                self._on_finish()

        return result
