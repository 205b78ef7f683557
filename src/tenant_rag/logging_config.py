"""Logging setup shared by the serving layer and scripts."""

from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: int | str = logging.INFO) -> logging.Logger:
    """Attach a single stdout handler to the ``tenant_rag`` logger.

    Calling this more than once replaces the handler instead of stacking
    duplicates.
    """
    logger = logging.getLogger("tenant_rag")
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    return logger
