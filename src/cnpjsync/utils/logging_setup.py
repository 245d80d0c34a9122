"""Utility to provide a shared logger configuration for the project."""

from __future__ import annotations

import logging
import sys
from typing import Final

_LOGGER_NAME: Final = "cnpjsync"


def setup_logger(level: int | None = None) -> logging.Logger:
    """Return the shared cnpjsync logger configured for console output (stderr).

    The level is only touched when *level* is given, so modules can call this
    at import time without resetting what the CLI configured.
    """

    logger = logging.getLogger(_LOGGER_NAME)
    if level is not None:
        logger.setLevel(level)
    elif logger.level == logging.NOTSET:
        logger.setLevel(logging.INFO)
    logger.propagate = False

    if not any(isinstance(handler, logging.StreamHandler) for handler in logger.handlers):
        # stdout is reserved for the JSON the CLI prints.
        handler = logging.StreamHandler(sys.stderr)
        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s - %(message)s",
            "%H:%M:%S",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
