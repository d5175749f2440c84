"""
Plugin mocks — static stand-ins for registry plugins during development.

``devloop.json`` may declare::

    {"mocks": {"plugins": {"static": {"analytics": "disabled"}}}}

Each entry becomes a ``MockPluginDescriptor`` and is registered into the
dev registry through ``StaticMockPlugin``, whose ``execute`` returns the
configured value no matter how it is called.
"""

from __future__ import annotations

import logging
from typing import Any

from devloop.core.config.loader import LocalConfig
from devloop.core.models.registry import MockPluginDescriptor, Plugin

logger = logging.getLogger(__name__)


class StaticMockPlugin(Plugin):
    """Adapts a descriptor to the registry's plugin contract."""

    def __init__(self, descriptor: MockPluginDescriptor) -> None:
        self.descriptor = descriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    def register(self, options: dict[str, Any]) -> None:
        return None

    def execute(self, *args: Any, **kwargs: Any) -> Any:
        return self.descriptor.value

    def __repr__(self) -> str:
        return f"<StaticMockPlugin {self.name}={self.descriptor.value!r}>"


def load_plugin_mocks(config: LocalConfig) -> list[MockPluginDescriptor]:
    """Descriptors for every static mock in the local config, in file order."""
    mocks = [
        MockPluginDescriptor(name=name, value=value)
        for name, value in config.mocks.plugins.static.items()
    ]
    logger.debug("Loaded %d plugin mocks", len(mocks))
    return mocks
