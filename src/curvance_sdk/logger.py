"""Console logging for the curvance-sdk CLI and scripts.

Library modules only create loggers with ``logging.getLogger(__name__)``;
handlers are installed here, and only by applications.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TextIO

# Below DEBUG; opens up web3/urllib3 request logging
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

SDK_LOGGER = "curvance_sdk"
NOISY_LOGGERS = ("web3", "urllib3", "requests")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_LEVEL_STYLES = {
    TRACE: "\033[90m",
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;35m",
}
_RESET = "\033[0m"


class ColoredFormatter(logging.Formatter):
    """Colors the level name; the record itself is left untouched."""

    def __init__(self, *args, use_color: bool = True, **kwargs):
        super().__init__(*args, **kwargs)
        self.use_color = use_color

    def formatMessage(self, record: logging.LogRecord) -> str:
        style = _LEVEL_STYLES.get(record.levelno)
        if not self.use_color or style is None:
            return super().formatMessage(record)
        values = dict(record.__dict__, levelname=f"{style}{record.levelname}{_RESET}")
        return self._style._fmt % values


def resolve_level(log_level: str | None = None) -> int:
    name = (log_level or os.getenv("CURVANCE_LOG_LEVEL") or "INFO").upper()
    if name == "TRACE":
        return TRACE
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def setup_logging(log_level: str | None = None, stream: TextIO | None = None) -> None:
    """Install a colored console handler on the root logger.

    Logs go to stderr by default so command output on stdout stays clean.
    At DEBUG the web3/urllib3/requests loggers stay at WARNING; at TRACE
    they are opened up too.
    """
    level = resolve_level(log_level)
    stream = stream or sys.stderr

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        ColoredFormatter(
            fmt=LOG_FORMAT,
            datefmt=DATE_FORMAT,
            use_color=getattr(stream, "isatty", lambda: False)(),
        )
    )
    logging.basicConfig(level=level, handlers=[handler], force=True)

    noisy_level = TRACE if level <= TRACE else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)
