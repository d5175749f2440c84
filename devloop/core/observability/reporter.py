"""
Reporter — the user-facing narrative of the dev loop.

The dev loop is long-running and asynchronous, so the console output is
part of its contract: what was found, what is being packaged, what failed
and what to do about it.  Core services write that narrative through a
``Reporter`` and keep ``logging`` for diagnostics.

``ConsoleReporter`` (``devloop.ui.cli.console``) renders with click colours.
``LogReporter`` forwards to ``logging`` for embedding and headless runs.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)

TREE_BRANCH = "├── "


class Reporter(ABC):
    """Narrative sink used by every core service."""

    @abstractmethod
    def step(self, message: str) -> None:
        """Announce a step in progress (completed later by ``ok``)."""

    @abstractmethod
    def ok(self, message: str = "OK") -> None:
        """Mark the pending step as done."""

    @abstractmethod
    def item(self, text: str) -> None:
        """List one entry under the current step (a component, a mock)."""

    @abstractmethod
    def warn(self, message: str) -> None:
        """Something the developer should notice; the loop carries on."""

    @abstractmethod
    def error(self, message: str) -> None:
        """A failure, with whatever detail is known."""

    def hint(self, message: str, command: str | None = None) -> None:
        """A remediation hint, optionally naming a command to run."""
        self.error(f"{message}{command}" if command else message)


class LogReporter(Reporter):
    """Reporter that writes to a logger instead of the terminal."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def step(self, message: str) -> None:
        self._log.info(message)

    def ok(self, message: str = "OK") -> None:
        self._log.info(message)

    def item(self, text: str) -> None:
        self._log.info("%s%s", TREE_BRANCH, text)

    def warn(self, message: str) -> None:
        self._log.warning(message)

    def error(self, message: str) -> None:
        self._log.error(message)
