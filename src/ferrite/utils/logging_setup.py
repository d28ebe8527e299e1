"""Logging configuration for the command-line entry points."""

import logging
import sys
from typing import Union

LOG_FORMAT = "%(name)s:%(levelname)s:%(message)s"

# Libraries that log every request at DEBUG
NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(level: Union[str, int] = "WARNING") -> None:
    """Send log records to stderr so they never mix with answers on stdout."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )

    noisy_level = logging.WARNING if level > logging.DEBUG else logging.INFO
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)
