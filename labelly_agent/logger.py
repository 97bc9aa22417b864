"""Project-wide logging setup.

Modules log through ``logging.getLogger(__name__)``; every logger under the
``labelly_agent`` namespace ends up on the handler installed here::

    from labelly_agent.logger import configure
    configure(level="DEBUG")
"""
from __future__ import annotations

import logging
import os
import sys
from typing import Final, Union

_DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_LOGGER_NAME: Final[str] = "labelly_agent"

_LevelT = Union[int, str]


def _stdout_handler(fmt: str) -> logging.StreamHandler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def configure(
    *,
    level: _LevelT | None = None,
    log_format: str = _DEFAULT_FORMAT,
    replace_handlers: bool = True,
) -> logging.Logger:
    """(Re)configure the package logger.

    ``level`` defaults to ``LABELLY_LOG_LEVEL`` (``INFO`` when unset).
    """
    if level is None:
        level = os.getenv("LABELLY_LOG_LEVEL", "INFO").strip().upper() or "INFO"

    lg = logging.getLogger(_LOGGER_NAME)
    lg.setLevel(level)
    if replace_handlers:
        lg.handlers.clear()
    lg.addHandler(_stdout_handler(log_format))
    lg.propagate = False
    return lg


__all__ = ["configure"]
