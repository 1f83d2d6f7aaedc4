"""Logging set-up shared by the CLI, the HTTP service and the scan pipeline."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import IO, Optional

_LOGGER_NAME = "repolens"

LOG_LEVEL_ENV = "REPOLENS_LOG_LEVEL"

_CONSOLE_FORMAT = "[repolens] %(levelname)s %(message)s"
# Verbose output is for tracing a scan, so it names the pipeline stage.
_VERBOSE_FORMAT = "[repolens] %(levelname)s %(stage)s: %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class _StageFilter(logging.Filter):
    """Expose the logger name without the package prefix as ``%(stage)s``."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith(f"{_LOGGER_NAME}."):
            name = name[len(_LOGGER_NAME) + 1 :]
        record.stage = name
        return True


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a pipeline-stage logger such as ``repolens.scanner``."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def _level_from_env() -> Optional[int]:
    raw = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    if not raw:
        return None
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else None


def configure_logging(
    *,
    verbose: bool = False,
    log_file: Path | None = None,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Configure the ``repolens`` logger.

    ``--verbose`` selects DEBUG and prefixes console lines with the stage name;
    ``REPOLENS_LOG_LEVEL`` (e.g. ``WARNING``) overrides the level either way.
    Calling this again replaces and closes the previous handlers.
    """
    level = logging.DEBUG if verbose else logging.INFO
    level = _level_from_env() or level
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler(stream)
    stream_handler.setLevel(level)
    if verbose:
        stream_handler.addFilter(_StageFilter())
        stream_handler.setFormatter(logging.Formatter(_VERBOSE_FORMAT))
    else:
        stream_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


__all__ = ["LOG_LEVEL_ENV", "configure_logging", "get_logger"]
