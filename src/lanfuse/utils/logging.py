from __future__ import annotations

import logging
import os
from typing import Literal

import coloredlogs  # type: ignore[import]

LogLevel = Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]

LEVEL_ENV_VARS = ("LANFUSE_LOGLEVEL", "LOGLEVEL")
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
DEFAULT_DATE_FORMAT = "%H:%M:%S"

# zeroconf logs every malformed packet on the segment at INFO
NOISY_LOGGERS = ("zeroconf",)


def resolve_level(level: str | None = None) -> str:
    """Explicit level first, then the environment, then INFO."""
    if level:
        return level.upper()
    for name in LEVEL_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value.upper()
    return "INFO"


def setup_logging(level: LogLevel | None = None) -> str:
    resolved = resolve_level(level)
    coloredlogs.install(
        level=resolved,
        fmt=DEFAULT_FORMAT,
        datefmt=DEFAULT_DATE_FORMAT,
    )

    if resolved != "DEBUG":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    return resolved
