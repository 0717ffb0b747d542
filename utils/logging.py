"""
Logging Utility - Structured JSON Logging

Provides centralized, structured logging configuration for the schedule tool.
Supports JSON format for unattended runs and human-readable format for operators.

Modules keep using stdlib loggers with extra= context; structlog's
ProcessorFormatter renders those records, extra fields included.

Usage:
    from utils.logging import get_logger, setup_logging

    setup_logging(level="INFO", format_type="json")
    logger = get_logger(__name__)
    logger.info("Crontab updated", extra={"identifier": "swsd-data-extractor"})
"""

import logging
import sys
from typing import Any

import orjson
import structlog

# Applied to every stdlib record before rendering
SHARED_PROCESSORS = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.ExtraAdder(),
    structlog.processors.TimeStamper(fmt="iso", utc=True),
]


def _orjson_dumps(obj: Any, **kwargs: Any) -> str:
    return orjson.dumps(obj, default=kwargs.get("default", str)).decode("utf-8")


def build_formatter(format_type: str = "json") -> structlog.stdlib.ProcessorFormatter:
    """Build the handler formatter for 'json' or 'text' output.

    Args:
        format_type: Log format ('json' or 'text')

    Returns:
        ProcessorFormatter rendering stdlib records
    """
    if format_type == "json":
        processors = [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(serializer=_orjson_dumps),
        ]
    else:
        processors = [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=False),
        ]

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=SHARED_PROCESSORS,
        processors=processors,
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def setup_logging(
    level: str = "INFO",
    format_type: str = "json",
    stream: Any = None,
) -> None:
    """Configure application-wide logging.

    Logs go to stderr by default so that stdout stays free for crontab output.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Log format ('json' or 'text')
        stream: Output stream, defaults to sys.stderr
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(build_formatter(format_type))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[handler],
        force=True,
    )
