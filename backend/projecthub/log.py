"""structlog configuration."""

import logging
import sys

import structlog

from projecthub.config import Settings


def configure_logging(settings: Settings) -> None:
    """Configure structlog for the process.

    Development gets a coloured console renderer; every other environment
    emits one JSON object per line. Context bound through
    ``structlog.contextvars`` (request id, method, path) is merged into
    every event.
    """
    level = logging.getLevelName(settings.log_level)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.environment == "development":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.extend(
            [
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ]
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
