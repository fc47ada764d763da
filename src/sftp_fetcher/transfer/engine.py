"""Transfer engine for copying remote files into a local directory."""

import posixpath
import time
from contextlib import AsyncExitStack
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Optional, Sequence

import asyncssh
import structlog

from sftp_fetcher.config.settings import TransferSettings
from sftp_fetcher.connection.session import SFTPSession
from sftp_fetcher.transfer.models import RunResult, TransferOutcome, TransferStatus


logger = structlog.get_logger(__name__)


def local_path_for(remote_path: str, local_dir: str | Path) -> Path:
    """Map a remote path to its local destination.

    Directory components of the remote path are dropped, so files with
    the same base name from different remote directories land on the
    same local path.

    Args:
        remote_path: Path on the remote host.
        local_dir: Destination directory.

    Returns:
        Local file path.
    """
    return Path(local_dir) / posixpath.basename(remote_path.rstrip("/"))


class TransferEngine:
    """Copies a list of remote files through an open session.

    Files are attempted strictly in list order. With ``stop_on_error``
    (the default) the first failure ends the run and the remaining files
    get no outcome at all.
    """

    def __init__(self, settings: Optional[TransferSettings] = None) -> None:
        """Initialize the transfer engine.

        Args:
            settings: Transfer settings.
        """
        self._settings = settings or TransferSettings()

    @property
    def stop_on_error(self) -> bool:
        """Check if a failure halts the rest of the file list."""
        return self._settings.stop_on_error

    async def _copy(self, src: asyncssh.SFTPClientFile, dst: BinaryIO) -> int:
        """Stream all bytes from the remote handle to the local one.

        Returns:
            Number of bytes copied.
        """
        block_size = self._settings.block_size
        bytes_copied = 0

        while True:
            chunk = await src.read(block_size)
            if not chunk:
                break
            dst.write(chunk)
            bytes_copied += len(chunk)

        dst.flush()
        return bytes_copied

    async def _release_remote(self, remote_path: str, src: asyncssh.SFTPClientFile) -> None:
        try:
            await src.close()
        except (OSError, asyncssh.Error) as e:
            logger.warning("remote_close_failed", remote_path=remote_path, error=str(e))

    async def transfer_file(
        self,
        session: SFTPSession,
        remote_path: str,
        local_dir: str | Path,
    ) -> TransferOutcome:
        """Copy a single remote file.

        Args:
            session: Open SFTP session.
            remote_path: Path of the file on the remote host.
            local_dir: Destination directory.

        Returns:
            The outcome for this file. Failures are reported, not raised.
        """
        local_path = local_path_for(remote_path, local_dir)
        log = logger.bind(remote_path=remote_path, local_path=str(local_path))
        log.info("file_transfer_started")

        start_time = time.monotonic()

        def outcome(
            status: TransferStatus,
            error: Optional[BaseException] = None,
            bytes_transferred: int = 0,
        ) -> TransferOutcome:
            return TransferOutcome(
                remote_path=remote_path,
                local_path=str(local_path),
                status=status,
                error=error,
                bytes_transferred=bytes_transferred,
                duration_ms=int((time.monotonic() - start_time) * 1000),
            )

        async with AsyncExitStack() as stack:
            try:
                src = await session.open(remote_path)
            except Exception as e:
                log.error("file_transfer_failed", status="open_failed", error=str(e))
                return outcome(TransferStatus.OPEN_FAILED, e)
            stack.push_async_callback(self._release_remote, remote_path, src)

            try:
                dst = stack.enter_context(open(local_path, "wb"))
            except OSError as e:
                log.error("file_transfer_failed", status="create_failed", error=str(e))
                return outcome(TransferStatus.CREATE_FAILED, e)

            try:
                bytes_copied = await self._copy(src, dst)
            except Exception as e:
                # Partial output is left on disk.
                log.error("file_transfer_failed", status="copy_failed", error=str(e))
                return outcome(TransferStatus.COPY_FAILED, e)

        result = outcome(TransferStatus.SUCCESS, bytes_transferred=bytes_copied)
        log.info(
            "file_downloaded",
            bytes_transferred=bytes_copied,
            duration_ms=result.duration_ms,
        )
        return result

    async def run(
        self,
        session: SFTPSession,
        remote_files: Sequence[str],
        local_dir: str | Path,
    ) -> RunResult:
        """Copy every remote file into ``local_dir`` in order.

        Args:
            session: Open SFTP session.
            remote_files: Remote paths, duplicates allowed.
            local_dir: Destination directory.

        Returns:
            RunResult with one outcome per attempted file.
        """
        result = RunResult()

        for index, remote_path in enumerate(remote_files):
            transfer_outcome = await self.transfer_file(session, remote_path, local_dir)
            result.outcomes.append(transfer_outcome)

            if not transfer_outcome.succeeded and self.stop_on_error:
                result.skipped = len(remote_files) - index - 1
                if result.skipped:
                    logger.warning(
                        "remaining_files_skipped",
                        failed_path=remote_path,
                        skipped=result.skipped,
                    )
                break

        result.finished_at = datetime.now(timezone.utc)
        return result
