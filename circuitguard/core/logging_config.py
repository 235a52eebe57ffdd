"""
Structured logging configuration using structlog.

Provides JSON-formatted logs for production (searchable/aggregatable)
and human-readable colored output for development.

Usage:
    from circuitguard.core.logging_config import configure_logging, get_logger

    configure_logging()
    logger = get_logger(__name__)
    logger.warning("circuit opened", circuit="content_api", failures=5)

Output in production (JSON):
    {"event": "circuit opened", "circuit": "content_api", "failures": 5,
     "timestamp": "2024-01-01T12:00:00Z", "level": "warning"}

Output in development (colored):
    2024-01-01 12:00:00 [warning  ] circuit opened    circuit=content_api failures=5
"""

import logging
import sys
from typing import Any, Optional

import structlog

from circuitguard.core.config import settings

IS_TEST = "pytest" in sys.modules


def configure_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """Configure structlog with appropriate processors for the environment."""
    if json_output is None:
        json_output = settings.ENVIRONMENT == "production"
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)

    # Shared processors for all environments
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if json_output:
        # Production: JSON output for log aggregation
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        # Development: colored, human-readable output
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=not IS_TEST),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Route third-party stdlib logging to the same stream
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    # Reduce noise from chatty libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        A structlog bound logger with JSON/console output based on environment
    """
    return structlog.get_logger(name)
