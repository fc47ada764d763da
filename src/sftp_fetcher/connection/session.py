"""SFTP session wrapper around an asyncssh connection."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import asyncssh
import structlog


logger = structlog.get_logger(__name__)


class SessionState(str, Enum):
    """SFTP session state."""

    OPEN = "open"
    CLOSED = "closed"


@dataclass
class SFTPSession:
    """An authenticated SFTP session owned by a single run.

    Wraps the SSH connection and the SFTP client started on it. The
    session is released exactly once; repeated ``close()`` calls are
    no-ops.
    """

    host: str
    port: int
    _conn: Optional[asyncssh.SSHClientConnection] = field(default=None, repr=False)
    _sftp: Optional[asyncssh.SFTPClient] = field(default=None, repr=False)
    _state: SessionState = field(default=SessionState.OPEN)
    _opened_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def state(self) -> SessionState:
        """Get current session state."""
        return self._state

    @property
    def is_open(self) -> bool:
        """Check if session is still usable."""
        return self._state == SessionState.OPEN

    @property
    def opened_at(self) -> datetime:
        """Get session creation time."""
        return self._opened_at

    async def open(self, remote_path: str) -> asyncssh.SFTPClientFile:
        """Open a remote file for binary reading.

        Args:
            remote_path: Path of the file on the remote host.

        Returns:
            Remote file handle. The caller must close it.

        Raises:
            RuntimeError: If the session is closed.
            asyncssh.SFTPError: If the remote file cannot be opened.
        """
        if not self.is_open or self._sftp is None:
            raise RuntimeError("Session is closed")

        return await self._sftp.open(remote_path, "rb")

    async def close(self) -> None:
        """Exit the SFTP client and close the SSH connection."""
        if self._state == SessionState.CLOSED:
            return
        self._state = SessionState.CLOSED

        sftp, conn = self._sftp, self._conn
        self._sftp = None
        self._conn = None

        if sftp is not None:
            sftp.exit()
        if conn is not None:
            conn.close()
            try:
                await conn.wait_closed()
            except (OSError, asyncssh.Error) as e:
                logger.warning("session_close_error", host=self.host, error=str(e))

        logger.debug("session_closed", host=self.host, port=self.port)

    def to_dict(self) -> dict:
        """Convert session info to dictionary.

        Returns:
            Dictionary with session information.
        """
        return {
            "host": self.host,
            "port": self.port,
            "state": self._state.value,
            "opened_at": self._opened_at.isoformat(),
        }
