"""Structured logging configuration (structlog on top of stdlib logging)."""

import logging
import sys

import structlog

from cost_reporter.core.config import settings


def configure_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """
    Configure stdlib logging and structlog processors.

    Lambda ships stdout to CloudWatch Logs, where one JSON object per line is
    searchable with Logs Insights. Locally the console renderer is easier to read.

    Args:
        level: Log level name (defaults to settings.LOG_LEVEL)
        json_output: Render JSON lines (defaults to settings.LOG_JSON)
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    use_json = settings.LOG_JSON if json_output is None else json_output

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    # botocore is chatty at INFO (credential discovery, retries)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)

    renderer = (
        structlog.processors.JSONRenderer()
        if use_json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
