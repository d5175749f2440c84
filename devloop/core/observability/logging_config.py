"""
Diagnostic logging for the devloop CLI.

``devloop.main`` calls ``setup_logging`` once per invocation; modules log
through ``logging.getLogger(__name__)`` and never configure handlers
themselves.

The console level comes from ``resolve_level``: ``--debug``, then
``--verbose``, then ``--quiet``, then ``DEVLOOP_LOG_LEVEL``, else WARNING.
``DEVLOOP_LOG_FILE`` adds a file that can run at its own level
(``DEVLOOP_LOG_FILE_LEVEL``).

What the developer is meant to read (components found, packaging results,
port hints) is the ``Reporter`` narrative, not these logs.
"""

from __future__ import annotations

import logging
import os
import sys

# Console layout by level: the most detailed layout whose threshold the
# level reaches.  Above INFO the narrative already says what is happening.
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
)
_CONSOLE_PLAIN = "%(message)s"

_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# werkzeug writes one INFO line per served request
_CHATTY_LOGGERS = ("werkzeug", "urllib3", "pip", "asyncio")


def resolve_level(
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
) -> str:
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get("DEVLOOP_LOG_LEVEL", "WARNING")


def level_number(name: str | None) -> int:
    """``"info"`` -> ``logging.INFO``; empty or unknown names mean WARNING."""
    number = getattr(logging, name.upper(), None) if name else None
    return number if isinstance(number, int) else logging.WARNING


def _console_formatter(level: int) -> logging.Formatter:
    for threshold, fmt, datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            return logging.Formatter(fmt, datefmt=datefmt)
    return logging.Formatter(_CONSOLE_PLAIN)


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Replace the root logger's handlers with devloop's.

    Args:
        level: Console level name.  Unknown names fall back to WARNING.
        log_file: Also write to this file when set.
        log_file_level: Level for ``log_file``; the console level if unset.
        quiet_third_party: Hold the request log, pip and asyncio at WARNING
            unless the console is at DEBUG.
    """
    console_level = level_number(level)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(_console_formatter(console_level))
    handlers: list[logging.Handler] = [console]

    if log_file:
        to_file = logging.FileHandler(log_file, encoding="utf-8")
        to_file.setLevel(level_number(log_file_level) if log_file_level else console_level)
        to_file.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
        handlers.append(to_file)

    root = logging.getLogger()
    root.handlers[:] = handlers
    # The root must let through whatever the chattiest handler wants
    root.setLevel(min(handler.level for handler in handlers))

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False
