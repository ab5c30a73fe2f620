"""Diagnostics for the command-line tool.

Everything is logged under the ``collisionbaker`` namespace to stderr, and
optionally mirrored to a file, so stdout stays free for piping.
"""
import logging
import sys
from typing import Optional, Union

LOGGER_NAME = "collisionbaker"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"


def setup_logging(level: Union[int, str] = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Route the package logger to stderr (and ``log_file``) at ``level``.

    ``level`` is a level number or a name such as ``"DEBUG"``. Calling it
    again replaces the handlers of the previous call.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
