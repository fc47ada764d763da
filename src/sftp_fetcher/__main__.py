"""Allow running with ``python -m sftp_fetcher``."""

from sftp_fetcher.main import run

run()
