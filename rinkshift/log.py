"""Rich-based logging helpers for rinkshift.

This module centralizes logging configuration so that:

- CLIs get colored, rich-formatted log output by default.
- Library code can call :func:`get_logger` or import :data:`logger`
  without worrying about handlers.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

_LOGGER_NAME = "rinkshift"
_configured_logger: logging.Logger | None = None


def _normalize_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    lvl = logging.getLevelName(str(level).upper())
    return lvl if isinstance(lvl, int) else logging.INFO


def _configure_logger(level: Union[int, str] = logging.INFO) -> logging.Logger:
    global _configured_logger

    lvl = _normalize_level(level)
    if _configured_logger is not None:
        _configured_logger.setLevel(lvl)
        for handler in _configured_logger.handlers:
            handler.setLevel(lvl)
        return _configured_logger

    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(lvl)

    # Only attach handlers if none are present so that host applications
    # can override logging configuration when embedding rinkshift.
    if not logger.handlers:
        console = Console(stderr=True)
        handler = RichHandler(
            console=console,
            rich_tracebacks=True,
            markup=False,
            show_path=False,
        )
        handler.setLevel(lvl)
        logger.addHandler(handler)

    _configured_logger = logger
    return logger


# Default shared logger used across rinkshift.
logger = _configure_logger()


def set_level(level: Union[int, str]) -> None:
    """Set the global logging level for the shared rinkshift logger."""
    _configure_logger(level)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a named logger that propagates to the shared rinkshift logger."""
    base = _configure_logger(logger.level)
    if not name or name == base.name:
        return base
    return logging.getLogger(name)
