# prode_engine/logging_setup.py
from __future__ import annotations

import logging

from prode_engine.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = LOG_LEVEL) -> logging.Logger:
    """
    Attach one stream handler to the "prode_engine" logger.

    Safe to call more than once (e.g. app reloads); the handler is not duplicated.
    """
    logger = logging.getLogger("prode_engine")
    logger.setLevel(level)

    if not any(getattr(h, "_prode_engine", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._prode_engine = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    return logger
