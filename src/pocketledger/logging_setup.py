"""Logging configuration for the command line entry point."""

import logging
import sys
from typing import Union

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_LEVEL_ENV_VAR = "POCKETLEDGER_LOG_LEVEL"

_HANDLER_NAME = "pocketledger-stderr"


def configure_logging(level: Union[int, str] = logging.WARNING) -> None:
    """Send pocketledger log records to stderr at the given level.

    Calling it again replaces the handler installed by the previous call,
    so records always go to the current sys.stderr.
    """
    if isinstance(level, str):
        name = level
        level = logging.getLevelName(name.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {name}")

    logger = logging.getLogger("pocketledger")
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
