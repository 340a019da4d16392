"""Logging setup for host applications.

Library modules only create `logging.getLogger(__name__)`; handlers are
installed here, once, by whoever runs the engine.
"""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
PACKAGE_LOGGER = "kb_retrieval"


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """Attach a single stream handler to the package logger.

    Calling it again only updates the level.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    if not any(getattr(h, "_kb_retrieval", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._kb_retrieval = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
