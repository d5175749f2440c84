"""
Mtime watcher — polls component sources for changes.

Design decisions
────────────────
1. **Mtime polling** (not inotify/watchdog): a few hundred stat() calls per
   poll for a typical components folder, no extra dependency, same
   behaviour on every platform.
2. **One event per changed path**: added, modified and removed files all
   count.  The coordinator already ignores triggers that arrive while a
   pass is running, so bursts collapse on their own.
3. **Packaging output is ignored**: ``_package`` and friends would
   otherwise re-trigger the pass that wrote them.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from devloop.adapters.base import ChangeWatcher, WatchCallback, WatchEvent

logger = logging.getLogger(__name__)

POLL_INTERVAL_S = 1.0
"""Seconds between poll cycles."""

_IGNORED_DIRS = frozenset({"_package", "_package.tmp", "__pycache__", "node_modules"})


class MtimeWatcher(ChangeWatcher):
    def __init__(self, poll_interval: float = POLL_INTERVAL_S) -> None:
        self._poll_interval = poll_interval

    @property
    def name(self) -> str:
        return "mtime"

    def watch(
        self,
        components: list[Path],
        root: Path,
        on_event: WatchCallback,
    ) -> asyncio.Task:
        task = asyncio.ensure_future(self._poll_loop(list(components), on_event))
        logger.info(
            "Watching %d components under %s (poll every %.1fs)",
            len(components),
            root,
            self._poll_interval,
        )
        return task

    async def _poll_loop(self, components: list[Path], on_event: WatchCallback) -> None:
        """Poll forever; cancelled when the dev loop stops."""
        previous = snapshot(components)

        while True:
            await asyncio.sleep(self._poll_interval)

            try:
                current = snapshot(components)
            except OSError as e:
                on_event(WatchEvent(error=e))
                continue

            for path in diff(previous, current):
                on_event(WatchEvent(path=path))
            previous = current


def snapshot(components: list[Path]) -> dict[Path, float]:
    """Map every watched file under the components to its mtime."""
    mtimes: dict[Path, float] = {}
    for component in components:
        for path in _walk(component):
            try:
                mtimes[path] = path.stat().st_mtime
            except FileNotFoundError:
                continue  # deleted between listing and stat
    return mtimes


def diff(before: dict[Path, float], after: dict[Path, float]) -> list[Path]:
    """Paths added, removed or modified between two snapshots, sorted."""
    changed = {p for p, m in after.items() if before.get(p) != m}
    changed |= before.keys() - after.keys()
    return sorted(changed)


def _walk(directory: Path):
    if not directory.is_dir():
        return
    for entry in directory.iterdir():
        if entry.name.startswith("."):
            continue
        if entry.is_dir():
            if entry.name in _IGNORED_DIRS:
                continue
            yield from _walk(entry)
        elif entry.is_file():
            yield entry
