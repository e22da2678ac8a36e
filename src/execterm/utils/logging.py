"""Logging setup for execterm.

Two loggers matter at runtime: the ``execterm`` tree, which carries
session transitions and transport diagnostics, and the ``websockets``
library logger, which reports every frame at DEBUG level and is kept
at its own, usually quieter, level.
"""

from __future__ import annotations

import logging
import sys

from execterm.config.settings import LoggingConfig

APP_LOGGER = "execterm"
TRANSPORT_LOGGER = "websockets"


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure the execterm and transport loggers.

    Handlers installed by an earlier call are replaced, so calling this
    again (e.g. after ``--verbose`` raised the level) does not duplicate
    log lines. Records from the transport logger propagate to the root
    logger only, never into the execterm handlers.

    Args:
        config: Logging configuration. If None, uses defaults
                (INFO level, stderr output, transport at WARNING).
    """
    if config is None:
        config = LoggingConfig()

    app_logger = logging.getLogger(APP_LOGGER)
    app_logger.setLevel(_level(config.level))
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(config.format)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    app_logger.addHandler(stderr_handler)

    if config.file:
        file_handler = logging.FileHandler(config.file)
        file_handler.setFormatter(formatter)
        app_logger.addHandler(file_handler)

    logging.getLogger(TRANSPORT_LOGGER).setLevel(_level(config.transport_level))

    app_logger.debug(
        "Logging initialized at %s level (transport %s)",
        config.level, config.transport_level,
    )
