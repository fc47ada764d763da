"""Application settings loader."""

from enum import Enum
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""

    pass


class HostKeyPolicy(str, Enum):
    """How the remote host's identity is checked."""

    ACCEPT_ANY = "accept_any"
    PINNED = "pinned"


class OverlapPolicy(str, Enum):
    """What a firing does while a previous run is still in flight."""

    ALLOW = "allow"
    SKIP = "skip"


class TransferSettings(BaseModel):
    """File transfer configuration."""

    local_dir: str = Field(default="./")
    stop_on_error: bool = Field(default=True)
    block_size: int = Field(default=65536, ge=1)


class SSHSettings(BaseModel):
    """SSH transport configuration."""

    connect_timeout_seconds: float = Field(default=10, gt=0)
    host_key_policy: HostKeyPolicy = Field(default=HostKeyPolicy.ACCEPT_ANY)
    known_hosts_path: Optional[str] = Field(default=None)

    @model_validator(mode="after")
    def check_known_hosts(self) -> "SSHSettings":
        if self.host_key_policy == HostKeyPolicy.PINNED and not self.known_hosts_path:
            raise ValueError("known_hosts_path is required when host_key_policy is 'pinned'")
        return self


class SchedulerSettings(BaseModel):
    """Scheduler configuration."""

    overlap_policy: OverlapPolicy = Field(default=OverlapPolicy.ALLOW)


class MetricsSettings(BaseModel):
    """Prometheus metrics configuration."""

    enabled: bool = Field(default=False)
    port: int = Field(default=9090, ge=1, le=65535)


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO")
    format: str = Field(default="console")


class Settings(BaseSettings):
    """Application settings."""

    transfer: TransferSettings = Field(default_factory=TransferSettings)
    ssh: SSHSettings = Field(default_factory=SSHSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    config_path: Optional[str] = Field(default=None)

    model_config = {
        "env_prefix": "SFTP_FETCHER_",
        "env_nested_delimiter": "__",
        "extra": "ignore",
    }

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> "Settings":
        """Load settings from YAML file.

        The ``connection`` section of the same file is ignored here; it is
        read by :func:`sftp_fetcher.config.connections.load_connection_params`.

        Args:
            config_path: Path to the YAML configuration file.

        Returns:
            Settings instance loaded from the file.

        Raises:
            ConfigError: If the file is missing, unparsable or invalid.
        """
        config_path = Path(config_path)
        config_data = read_yaml(config_path)

        try:
            return cls(**config_data, config_path=str(config_path))
        except (ValidationError, TypeError) as e:
            raise ConfigError(f"Invalid settings in {config_path}: {e}") from e


def read_yaml(config_path: str | Path) -> dict[str, Any]:
    """Read a YAML mapping from disk.

    Args:
        config_path: Path to the YAML file.

    Returns:
        The top-level mapping (empty if the file is empty).

    Raises:
        ConfigError: If the file is missing, unparsable or not a mapping.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read config {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config {config_path} must be a mapping at the top level")
    return data
