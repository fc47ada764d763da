"""Connection parameters for the remote SFTP host."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sftp_fetcher.config.settings import ConfigError, read_yaml


@dataclass(frozen=True)
class ConnectionParams:
    """Remote endpoint, credentials, file list and schedule.

    Loaded once at startup and shared read-only by every run.
    """

    user: str
    secret: str = field(repr=False)
    host: str
    port: int = 22
    remote_files: tuple[str, ...] = ()
    schedule: str = ""

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if not self.host:
            raise ValueError("host is required")
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise ValueError(f"port must be an integer: {self.port!r}")
        if not 1 <= self.port <= 65535:
            raise ValueError(f"port out of range: {self.port}")
        if not self.schedule or not self.schedule.strip():
            raise ValueError("schedule (connection.c) is required")
        if any(not isinstance(p, str) or not p for p in self.remote_files):
            raise ValueError("remoteFiles entries must be non-empty strings")

    @property
    def address(self) -> str:
        """Get the host:port address."""
        return f"{self.host}:{self.port}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConnectionParams":
        """Create ConnectionParams from the ``connection`` config section.

        Args:
            data: Mapping with keys user, password, host, port,
                remoteFiles and c.

        Returns:
            ConnectionParams instance.

        Raises:
            ValueError: If required fields are missing or invalid.
        """
        for field_name in ("user", "host", "c"):
            if field_name not in data:
                raise ValueError(f"Missing required field: {field_name}")

        remote_files = data.get("remoteFiles") or []
        if isinstance(remote_files, str) or not isinstance(remote_files, list):
            raise ValueError("remoteFiles must be a list of paths")

        return cls(
            user=str(data["user"]),
            secret=str(data.get("password", "")),
            host=str(data["host"] or ""),
            port=data.get("port", 22),
            remote_files=tuple(remote_files),
            schedule=str(data["c"]),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dictionary safe for logging (secret masked).

        Returns:
            Dictionary representation of the parameters.
        """
        return {
            "user": self.user,
            "password": "***" if self.secret else "",
            "host": self.host,
            "port": self.port,
            "remoteFiles": list(self.remote_files),
            "c": self.schedule,
        }


def load_connection_params(config_path: str | Path) -> ConnectionParams:
    """Load the ``connection`` section of a YAML configuration file.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Validated ConnectionParams.

    Raises:
        ConfigError: If the file or the section is missing or invalid.
    """
    config_data = read_yaml(config_path)

    section = config_data.get("connection")
    if not isinstance(section, dict):
        raise ConfigError(f"Missing 'connection' section in {config_path}")

    try:
        return ConnectionParams.from_dict(section)
    except ValueError as e:
        raise ConfigError(f"Invalid connection config in {config_path}: {e}") from e
