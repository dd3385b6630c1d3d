"""Logging configuration for the rewards application.

Usage:
    from evuka.log import configure_logging
    configure_logging()

Environment variables:
    EVUKA_LOG_LEVEL: DEBUG, INFO, WARNING or ERROR. Default: INFO
"""

from __future__ import annotations

import logging
import os
import sys

DEFAULT_LOG_LEVEL = logging.INFO

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_FORMAT_DEBUG = "%(asctime)s %(levelname)s [%(name)s:%(lineno)d] %(message)s"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}

_configured = False


def configure_logging(level: int | None = None) -> None:
    """Attach a stderr handler to the ``evuka`` logger once.

    Args:
        level: Explicit log level. If None, read from EVUKA_LOG_LEVEL.
    """
    global _configured

    if _configured:
        return

    if level is None:
        env_level = os.environ.get("EVUKA_LOG_LEVEL", "").upper()
        level = _LEVELS.get(env_level, DEFAULT_LOG_LEVEL)

    fmt = LOG_FORMAT_DEBUG if level == logging.DEBUG else LOG_FORMAT
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))

    root = logging.getLogger("evuka")
    root.setLevel(level)
    root.addHandler(handler)
    root.propagate = False

    _configured = True
