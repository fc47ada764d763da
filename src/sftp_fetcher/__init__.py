"""SFTP Fetcher: scheduled download of remote files over SFTP."""

__version__ = "0.1.0"
