"""Transfer outcome models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class TransferStatus(str, Enum):
    """Per-file transfer status."""

    SUCCESS = "success"
    OPEN_FAILED = "open_failed"
    CREATE_FAILED = "create_failed"
    COPY_FAILED = "copy_failed"


@dataclass
class TransferOutcome:
    """Result of copying one remote file."""

    remote_path: str
    local_path: str
    status: TransferStatus
    error: Optional[BaseException] = field(default=None, repr=False)
    bytes_transferred: int = 0
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        """Check if the file was copied."""
        return self.status == TransferStatus.SUCCESS

    @property
    def error_message(self) -> Optional[str]:
        """Get the underlying cause as text."""
        if self.error is None:
            return None
        return str(self.error) or type(self.error).__name__

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Returns:
            Dictionary representation of the outcome.
        """
        result = {
            "remote_path": self.remote_path,
            "local_path": self.local_path,
            "status": self.status.value,
            "bytes_transferred": self.bytes_transferred,
            "duration_ms": self.duration_ms,
        }

        if self.error is not None:
            result["error_message"] = self.error_message

        return result


@dataclass
class RunResult:
    """Aggregate result of one scheduled run.

    Either ``connection_error`` is set and there are no outcomes, or
    ``outcomes`` holds one entry per attempted file in request order.
    """

    outcomes: list[TransferOutcome] = field(default_factory=list)
    connection_error: Optional[BaseException] = field(default=None, repr=False)
    skipped: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @classmethod
    def connection_failure(
        cls,
        error: BaseException,
        started_at: Optional[datetime] = None,
    ) -> "RunResult":
        """Create a result for a run that never got a session.

        Args:
            error: The connection-phase error.
            started_at: When the run started.

        Returns:
            RunResult with no outcomes.
        """
        return cls(
            connection_error=error,
            started_at=started_at or datetime.now(timezone.utc),
            finished_at=datetime.now(timezone.utc),
        )

    @property
    def is_connection_failure(self) -> bool:
        """Check if the run failed before any file was attempted."""
        return self.connection_error is not None

    @property
    def succeeded(self) -> bool:
        """Check if every requested file was copied."""
        return (
            self.connection_error is None
            and self.skipped == 0
            and all(o.succeeded for o in self.outcomes)
        )

    @property
    def failures(self) -> list[TransferOutcome]:
        """Get the outcomes that did not succeed."""
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def bytes_transferred(self) -> int:
        """Get total bytes copied in this run."""
        return sum(o.bytes_transferred for o in self.outcomes)

    @property
    def duration_ms(self) -> int:
        """Get run duration in milliseconds."""
        if self.finished_at is None:
            return 0
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Returns:
            Dictionary representation of the run.
        """
        result: dict[str, Any] = {
            "succeeded": self.succeeded,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "skipped": self.skipped,
            "bytes_transferred": self.bytes_transferred,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }

        if self.connection_error is not None:
            result["connection_error"] = str(self.connection_error)
            result["error_code"] = getattr(
                self.connection_error, "error_code", "CONNECTION_ERROR"
            )

        return result
