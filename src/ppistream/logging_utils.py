"""Logging helpers.

Library modules only ever ask for a named logger::

    from ppistream.logging_utils import get_logger

    logger = get_logger(__name__)
    logger.debug("replayed %d rows", n)

Handlers are attached once, by the application (the CLI calls
:func:`configure_logging`).
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(module_name: str) -> logging.Logger:
    """Return the logger for a module inside the ``ppistream`` hierarchy."""
    return logging.getLogger(module_name)


def configure_logging(level: int = logging.WARNING) -> logging.Logger:
    """Attach a stderr handler to the package logger.

    Calling it again only changes the level; no duplicate handlers are added.
    """
    logger = logging.getLogger("ppistream")
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
        # Keep records out of the root logger (no double output)
        logger.propagate = False

    return logger
