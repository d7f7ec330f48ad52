"""structlog setup for host applications.

The engine only ever calls ``structlog.get_logger()``; whoever embeds it
decides how logs look. ``configure_logging`` is the stock setup: console
output for humans, JSON lines for pipelines. ``configure_logging_from_config``
applies the ``log_level``/``log_json`` settings of a Config.

Provides:
- configure_logging: Configure structlog processors and level filtering
- configure_logging_from_config: Same, driven by Config
"""

import logging

import structlog

from codesentry.core.config import Config, load_config


def configure_logging(level: str = "info", json_output: bool = False) -> None:
    """Configure structlog processors and level filtering.

    Args:
        level: Minimum level name ("debug", "info", "warning", ...)
        json_output: Emit JSON lines instead of console-formatted output
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        cache_logger_on_first_use=True,
    )


def configure_logging_from_config(config: Config | None = None) -> None:
    """Configure structlog from engine configuration (environment by default)."""
    config = config or load_config()
    configure_logging(config.log_level, json_output=config.log_json)
