"""Logging setup for the codemap server.

Everything logs under the ``codemap`` logger. Output goes to a file when
``logging.file`` (or ``CODEMAP_LOG``) is set, otherwise to stderr. uvicorn's
error logger shares the same handlers so startup failures land in one place.

Verbosity runs error(0), warning(1), info(2), verbose(3), trace(4).
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from codemap.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("codemap")

_VERBOSITY = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)
_SHARED_LOGGERS = ("uvicorn.error",)
_FORMAT = "%(asctime)s %(levelname)s %(short_name)s: %(message)s"

_initialized = False


class _LowercaseLevelFormatter(logging.Formatter):
    """``12:00:01 warning registry: ...`` style lines."""

    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        record.short_name = record.name.rpartition(".")[2]
        return super().format(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Numeric level for ``config``; ``verbose`` wins over ``level``."""
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        return _VERBOSITY[max(0, min(config.verbose, len(_VERBOSITY) - 1))]
    if config.level:
        name = config.level.upper()
        level = logging.getLevelName("WARNING" if name == "WARN" else name)
        if isinstance(level, int):
            return level
    return logging.INFO


def _open_handler(log_path: str | None) -> tuple[logging.Handler, OSError | None]:
    """File handler for ``log_path``; stderr when unset or unopenable."""
    if log_path:
        try:
            return logging.FileHandler(os.path.expanduser(log_path), mode="a", encoding="utf-8"), None
        except OSError as e:
            return logging.StreamHandler(sys.stderr), e
    return logging.StreamHandler(sys.stderr), None


def setup_logging(config: LoggingConfig | None = None, force: bool = False) -> None:
    """Install the codemap handler once; ``force`` replaces an earlier setup."""
    global _initialized
    if _initialized and not force:
        return
    _initialized = True

    level = resolve_level(config)
    log_path = config.file if config and config.file else os.environ.get("CODEMAP_LOG")

    handler, open_error = _open_handler(log_path)
    handler.setLevel(level)
    handler.setFormatter(_LowercaseLevelFormatter(_FORMAT, datefmt="%H:%M:%S"))

    for target in (logger, *(logging.getLogger(name) for name in _SHARED_LOGGERS)):
        for old in list(target.handlers):
            target.removeHandler(old)
        target.addHandler(handler)
        target.propagate = False
    logger.setLevel(level)

    if open_error is not None:
        logger.warning("Failed to open log file %s, logging to stderr: %s", log_path, open_error)


def get_logger(name: str | None = None) -> logging.Logger:
    """The ``codemap`` logger, or its child ``codemap.<name>``."""
    if name:
        return logger.getChild(name)
    return logger
