"""Connection manager: dial, authenticate and start SFTP."""

import asyncio
import socket
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import asyncssh
import structlog

from sftp_fetcher.config.connections import ConnectionParams
from sftp_fetcher.config.settings import HostKeyPolicy, SSHSettings
from sftp_fetcher.connection.session import SFTPSession


logger = structlog.get_logger(__name__)


class SessionError(ConnectionError):
    """Base class for connection-phase failures of a run."""

    error_code = "SESSION_ERROR"


class ConnectFailedError(SessionError):
    """Raised when the transport connection or SSH handshake fails."""

    error_code = "CONNECT_FAILED"


class AuthenticationFailedError(SessionError):
    """Raised when the server rejects the user/secret pair."""

    error_code = "AUTHENTICATION_FAILED"


class ProtocolNegotiationFailedError(SessionError):
    """Raised when the SFTP subsystem cannot be started."""

    error_code = "PROTOCOL_NEGOTIATION_FAILED"


def _close_abandoned_socket(dial: "asyncio.Future[socket.socket]") -> None:
    """Close a socket whose dial finished after the caller gave up on it."""
    if dial.cancelled() or dial.exception() is not None:
        return
    dial.result().close()
    logger.debug("abandoned_socket_closed")


class ConnectionManager:
    """Opens authenticated SFTP sessions to a single host.

    Every call performs exactly one attempt; retrying is left to the next
    scheduled firing.
    """

    def __init__(self, settings: Optional[SSHSettings] = None) -> None:
        """Initialize the connection manager.

        Args:
            settings: SSH transport settings.
        """
        self._settings = settings or SSHSettings()

    @property
    def known_hosts(self) -> Optional[str]:
        """Get the known_hosts argument passed to asyncssh.

        ``None`` disables host key verification entirely.
        """
        if self._settings.host_key_policy == HostKeyPolicy.PINNED:
            return self._settings.known_hosts_path
        return None

    async def _dial(self, params: ConnectionParams) -> socket.socket:
        """Open the TCP connection with the configured dial timeout.

        Raises:
            ConnectFailedError: If the host is unreachable or the dial
                times out.
        """
        timeout = self._settings.connect_timeout_seconds
        # create_connection applies the timeout per resolved address, so the
        # worker thread can outlive the overall deadline.
        dial = asyncio.ensure_future(
            asyncio.to_thread(
                socket.create_connection,
                (params.host, params.port),
                timeout,
            )
        )
        try:
            sock = await asyncio.wait_for(asyncio.shield(dial), timeout=timeout + 1)
        except (OSError, asyncio.TimeoutError) as e:
            raise ConnectFailedError(
                f"Failed to connect to {params.address}: {str(e) or 'timed out'}"
            ) from e
        finally:
            if not dial.done():
                dial.add_done_callback(_close_abandoned_socket)

        # Only the dial is bounded; the handshake blocks until the peer answers.
        sock.settimeout(None)
        return sock

    async def _handshake(
        self,
        params: ConnectionParams,
        sock: socket.socket,
    ) -> asyncssh.SSHClientConnection:
        """Run the SSH handshake and password authentication over ``sock``.

        Raises:
            AuthenticationFailedError: If authentication is rejected.
            ConnectFailedError: If the handshake fails.
        """
        try:
            return await asyncssh.connect(
                params.host,
                params.port,
                sock=sock,
                username=params.user,
                password=params.secret,
                known_hosts=self.known_hosts,
                client_keys=None,
                agent_path=None,
            )
        except asyncssh.PermissionDenied as e:
            raise AuthenticationFailedError(
                f"Authentication failed for {params.user}@{params.address}: {e.reason}"
            ) from e
        except (OSError, asyncssh.Error) as e:
            raise ConnectFailedError(
                f"SSH handshake with {params.address} failed: {e}"
            ) from e

    async def open(self, params: ConnectionParams) -> SFTPSession:
        """Establish an authenticated SFTP session.

        Args:
            params: Connection parameters.

        Returns:
            A ready-to-use session. The caller owns it and must close it.

        Raises:
            ConnectFailedError: If dialing or the SSH handshake fails.
            AuthenticationFailedError: If authentication is rejected.
            ProtocolNegotiationFailedError: If SFTP cannot be started.
        """
        log = logger.bind(host=params.host, port=params.port, user=params.user)
        log.info("connection_attempt")

        sock = await self._dial(params)

        try:
            conn = await self._handshake(params, sock)
        except BaseException:
            sock.close()
            raise

        try:
            sftp = await conn.start_sftp_client()
        except BaseException as e:
            conn.close()
            await conn.wait_closed()
            if isinstance(e, (OSError, asyncssh.Error)):
                raise ProtocolNegotiationFailedError(
                    f"Failed to start SFTP on {params.address}: {e}"
                ) from e
            raise

        log.info("connection_established")
        return SFTPSession(
            host=params.host,
            port=params.port,
            _conn=conn,
            _sftp=sftp,
        )

    @asynccontextmanager
    async def connect(self, params: ConnectionParams) -> AsyncIterator[SFTPSession]:
        """Context manager that opens a session and always closes it.

        Args:
            params: Connection parameters.

        Yields:
            The open SFTP session.
        """
        session = await self.open(params)
        try:
            yield session
        finally:
            await session.close()
