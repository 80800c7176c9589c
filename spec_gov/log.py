"""Process-wide loguru setup for the CLI."""

from __future__ import annotations

import sys

from loguru import logger

_HANDLER_IDS: list[int] = []


def _stderr_sink(message: str) -> None:
    # sys.stderr is looked up per write; test runners swap it out.
    sys.stderr.write(message)


def configure_logging(level: str = "INFO", *, json: bool = False) -> None:
    """Replace default handlers with a single stderr handler.

    Safe to call repeatedly; only handlers added here are removed.
    """
    if not _HANDLER_IDS:
        logger.remove()
    for handler_id in _HANDLER_IDS:
        logger.remove(handler_id)
    _HANDLER_IDS.clear()

    if json:
        handler_id = logger.add(_stderr_sink, level=level, serialize=True)
    else:
        handler_id = logger.add(
            _stderr_sink,
            level=level,
            format="{time:HH:mm:ss} {level: <7} {message}",
            colorize=False,
        )
    _HANDLER_IDS.append(handler_id)
