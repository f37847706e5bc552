"""Logging configuration for noted.

Modules log through ``logging.getLogger(__name__)``; this module only wires
the package logger to stderr once.  The level comes from the
``NOTED_LOG_LEVEL`` environment variable (``INFO`` by default).
"""

from __future__ import annotations

import logging
import os
import sys

_PACKAGE_LOGGER = "noted"


def configure_logging(level: str | None = None) -> logging.Logger:
    """Attach a stderr handler to the ``noted`` logger.

    Subsequent calls are no-ops and return the already configured logger.
    """
    logger = logging.getLogger(_PACKAGE_LOGGER)
    if logger.handlers:
        return logger

    level_name = (level or os.environ.get("NOTED_LOG_LEVEL", "INFO")).upper()
    resolved = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt="[%(levelname)s] %(name)s: %(message)s"))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False
    return logger
