"""Configuration module for SFTP Fetcher."""

from sftp_fetcher.config.connections import ConnectionParams, load_connection_params
from sftp_fetcher.config.settings import (
    ConfigError,
    HostKeyPolicy,
    OverlapPolicy,
    Settings,
)

__all__ = [
    "ConfigError",
    "ConnectionParams",
    "HostKeyPolicy",
    "OverlapPolicy",
    "Settings",
    "load_connection_params",
]
