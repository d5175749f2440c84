"""
Adapter base — the contracts between the dev loop and its collaborators.

The dev loop coordinates four side-effecting collaborators and never
implements them itself: component discovery, dependency installation,
packaging, and file watching.  Each is an abstract base class here; the
default implementations live beside this module and tests swap in fakes.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable


class DiscoveryError(Exception):
    """Raised when the components root cannot be enumerated."""


class InstallError(Exception):
    """Raised when missing dependencies could not be installed."""


@dataclass(frozen=True)
class WatchEvent:
    """One watcher notification: a changed file, or an error."""

    path: Path | None = None
    error: BaseException | None = None


WatchCallback = Callable[[WatchEvent], None]


class Adapter(ABC):
    """Common identity for all collaborators."""

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g. 'pip', 'mtime')."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class ComponentDiscoverer(Adapter):
    @abstractmethod
    def discover(self, root: Path) -> list[Path]:
        """List component directories under ``root``, in a stable order.

        Raises:
            DiscoveryError: If ``root`` can't be read.
        """


class DependencyInstaller(Adapter):
    @abstractmethod
    async def install(self, modules: list[str], target_dir: Path) -> None:
        """Install the given modules.

        Raises:
            InstallError: If installation failed.  Not retried.
        """


class ComponentPackager(Adapter):
    @abstractmethod
    async def package(self, component_dir: Path, production: bool = False) -> None:
        """Build one component into a servable artifact.

        Raises whatever the build raised; ``SyntaxError`` for source that
        doesn't compile.
        """


class ChangeWatcher(Adapter):
    @abstractmethod
    def watch(
        self,
        components: list[Path],
        root: Path,
        on_event: WatchCallback,
    ) -> asyncio.Task:
        """Start watching and return the task doing it.

        ``on_event`` is called on the event loop, once per change.
        """
