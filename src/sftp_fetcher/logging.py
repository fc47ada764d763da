"""Status-line logging for scheduled runs, rendered by structlog on stdout."""

import logging
import sys
from typing import Optional

import structlog


def _renderer(format: str) -> list:
    """Final processors for the chosen output format."""
    if format.lower() == "json":
        return [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    # Colors only when a terminal is attached; cron/systemd capture plain text.
    return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]


def setup_logging(
    level: str = "INFO",
    format: str = "console",
) -> None:
    """Route run, connection and per-file status lines to stdout.

    Called once at startup, after the config file has been read.

    Args:
        level: Minimum level name; unknown names fall back to INFO.
        format: 'console' for human-readable lines, 'json' for one
            object per line.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    # asyncssh logs every channel and packet event at INFO
    logging.getLogger("asyncssh").setLevel(max(log_level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            *_renderer(format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Logger whose events carry ``name`` as the logger field."""
    return structlog.get_logger(name)
