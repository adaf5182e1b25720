"""Loguru sink setup shared by the demo and the controller."""

import sys

from loguru import logger

_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level:<8} | {name}:{function} | {message}"


def configure_logging(level: str = "INFO", *, sink=None) -> None:
    """Replace loguru's default handler with a single formatted sink.

    ``sink`` defaults to ``sys.stderr``; tests pass a list's ``append`` to
    capture records.
    """

    logger.remove()
    logger.add(sink or sys.stderr, level=level, format=_LOG_FORMAT)
