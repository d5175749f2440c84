"""Adapters — default collaborators of the dev loop.

Public re-exports for convenient access.
"""

from devloop.adapters.base import (
    ChangeWatcher,
    ComponentDiscoverer,
    ComponentPackager,
    DependencyInstaller,
    DiscoveryError,
    InstallError,
    WatchEvent,
)
from devloop.adapters.discovery import DirectoryDiscoverer
from devloop.adapters.installer import PipInstaller
from devloop.adapters.packager import LocalPackager
from devloop.adapters.watcher import MtimeWatcher

__all__ = [
    "ChangeWatcher",
    "ComponentDiscoverer",
    "ComponentPackager",
    "DependencyInstaller",
    "DirectoryDiscoverer",
    "DiscoveryError",
    "InstallError",
    "LocalPackager",
    "MtimeWatcher",
    "PipInstaller",
    "WatchEvent",
]
