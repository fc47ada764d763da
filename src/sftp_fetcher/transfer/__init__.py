"""Transfer engine module."""

from sftp_fetcher.transfer.engine import TransferEngine, local_path_for
from sftp_fetcher.transfer.models import (
    RunResult,
    TransferOutcome,
    TransferStatus,
)

__all__ = [
    "TransferEngine",
    "RunResult",
    "TransferOutcome",
    "TransferStatus",
    "local_path_for",
]
