"""
Directory discovery — a component is any direct child of the components
root that holds a ``component.yml``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from devloop.adapters.base import ComponentDiscoverer, DiscoveryError
from devloop.core.models.component import MANIFEST_FILE

logger = logging.getLogger(__name__)


class DirectoryDiscoverer(ComponentDiscoverer):
    @property
    def name(self) -> str:
        return "directory"

    def discover(self, root: Path) -> list[Path]:
        if not root.exists():
            raise DiscoveryError(f"Components directory not found: {root}")
        if not root.is_dir():
            raise DiscoveryError(f"Not a directory: {root}")

        try:
            children = sorted(root.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise DiscoveryError(f"Cannot read {root}: {e}") from e

        components = [
            child.resolve()
            for child in children
            if child.is_dir()
            and not child.name.startswith((".", "_"))
            and (child / MANIFEST_FILE).is_file()
        ]
        logger.debug("Discovered %d components under %s", len(components), root)
        return components
