"""
Logging setup for the stackwatch daemon.

The console handler writes to stderr so ``--json`` output on stdout stays
parseable. A second handler can mirror the log to a file (for a host
without journald), at its own level.
"""

from __future__ import annotations

import logging
import sys

DEFAULT_LEVEL = "INFO"

# Console: one line per cycle step; DEBUG adds the source line
_CONSOLE_FMT = "%(asctime)s %(levelname)-5s [%(name)s] %(message)s"
_CONSOLE_DEBUG_FMT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s"
_FILE_FMT = "%(asctime)s %(levelname)-5s %(process)d %(name)s:%(lineno)d %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: str = DEFAULT_LEVEL,
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Replace the root handlers with stackwatch's console (and file) handler.

    Safe to call more than once; each call starts from a clean root logger.
    """
    console_level = _parse_level(level)
    console_fmt = _CONSOLE_DEBUG_FMT if console_level <= logging.DEBUG else _CONSOLE_FMT

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_handler(logging.StreamHandler(sys.stderr), console_level, console_fmt))

    root_level = console_level
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        root.addHandler(_handler(logging.FileHandler(log_file, encoding="utf-8"), file_level, _FILE_FMT))
        root_level = min(root_level, file_level)

    root.setLevel(root_level)


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=_DATEFMT))
    return handler


def _parse_level(level: str | None) -> int:
    """Level name to number; unknown or empty names fall back to INFO."""
    numeric = getattr(logging, (level or "").upper(), None)
    return numeric if isinstance(numeric, int) else logging.INFO
