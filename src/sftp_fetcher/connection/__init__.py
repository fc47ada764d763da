"""SFTP connection module."""

from sftp_fetcher.connection.manager import (
    AuthenticationFailedError,
    ConnectFailedError,
    ConnectionManager,
    ProtocolNegotiationFailedError,
    SessionError,
)
from sftp_fetcher.connection.session import SessionState, SFTPSession

__all__ = [
    "AuthenticationFailedError",
    "ConnectFailedError",
    "ConnectionManager",
    "ProtocolNegotiationFailedError",
    "SessionError",
    "SessionState",
    "SFTPSession",
]
