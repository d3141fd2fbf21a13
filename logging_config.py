"""Logging setup shared by the API and the sync client."""
import logging
from typing import Optional

ROOT_LOGGER = "cardsnaps"

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach a stream handler to the ``cardsnaps`` logger once.

    Calling it again only adjusts the level.
    """
    from config import Config

    logger = logging.getLogger(ROOT_LOGGER)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
    logger.setLevel((level or Config.LOG_LEVEL).upper())
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
