"""Structured logging for depsync engine events."""

from __future__ import annotations

import logging
import logging.config
import os

import structlog


def setup_logging(verbose: bool = False) -> None:
    """Route depsync's structlog events to stderr.

    Reads from environment variables:
        DEPSYNC_LOG_LEVEL:  log level (default: WARNING, DEBUG with ``verbose``)
        DEPSYNC_LOG_FORMAT: console | json (default: console)

    Only the ``depsync`` logger tree is configured; command output on stdout
    is left alone.
    """
    log_level = os.environ.get("DEPSYNC_LOG_LEVEL", "DEBUG" if verbose else "WARNING").upper()
    as_json = os.environ.get("DEPSYNC_LOG_FORMAT", "console").lower() == "json"

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "depsync": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        structlog.processors.JSONRenderer()
                        if as_json
                        else structlog.dev.ConsoleRenderer(colors=False),
                    ],
                },
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "depsync",
                },
            },
            "loggers": {
                "depsync": {"handlers": ["stderr"], "level": log_level, "propagate": False},
            },
        }
    )
