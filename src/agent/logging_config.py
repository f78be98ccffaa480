# src/agent/logging_config.py
"""
Central logging configuration for hosts running NPC agents.

Call configure_logging() from your main entrypoint once, for example:

    from agent.logging_config import configure_logging
    configure_logging("DEBUG")

Structured events still flow through monitoring.bus; this only covers the
plain `logging` output of every module.
"""

from __future__ import annotations

import logging
import sys
from typing import Iterable, Union

# httpx logs every request at INFO; one line per oracle call drowns the tick logs.
NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> None:
    """
    Configure root logging if no handlers are attached yet.

    Args:
        level: logging level as int or name ("INFO", "debug")
        quiet: loggers capped at WARNING
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"unknown log level {level!r}")

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    root = logging.getLogger()
    if root.handlers:
        return

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(level)
