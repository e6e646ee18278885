"""
structlog configuration for the privault CLI.

Every module logs through the standard ``logging`` module; this routes
its records through a structlog ProcessorFormatter:

- Human (default): console renderer to stderr
- JSON (--log-json): one JSON object per line to stderr
"""

import logging
import sys

import structlog


def configure_logging(*, verbose: bool = False, log_json: bool = False) -> None:
    """
    Install the root handler.

    Args:
        verbose:  DEBUG for privault loggers; otherwise WARNING and up.
        log_json: JSON renderer instead of the console renderer.
    """
    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if log_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.WARNING)

    logging.getLogger("privault").setLevel(logging.DEBUG if verbose else logging.WARNING)
