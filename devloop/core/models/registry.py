"""
Registry models — the configuration snapshot handed to the dev registry,
mock plugin descriptors, and the diagnostics the registry emits.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PORT = 3000


def check_plugin_name(name: str) -> str:
    """Return ``name`` if components can call it as ``context.plugins.<name>``.

    Raises:
        ValueError: If the name is not a Python identifier.
    """
    if not isinstance(name, str) or not name.isidentifier():
        raise ValueError(
            f"Invalid plugin name: {name!r} (use letters, digits and underscores, "
            "not starting with a digit)"
        )
    return name


class RegistryConfig(BaseModel):
    """Immutable snapshot built once per dev server start."""

    model_config = ConfigDict(frozen=True)

    local: bool = True
    verbosity: int = 1
    path: str
    port: int = DEFAULT_PORT
    base_url: str
    env: dict[str, str] = Field(default_factory=lambda: {"name": "local"})
    dependencies: tuple[str, ...] = ()

    @classmethod
    def for_dev(
        cls,
        path: str,
        port: int = DEFAULT_PORT,
        dependencies: list[str] | tuple[str, ...] = (),
    ) -> RegistryConfig:
        """Build the local-mode config the dev loop always uses."""
        return cls(
            path=path,
            port=port,
            base_url=f"http://localhost:{port}/",
            dependencies=tuple(dependencies),
        )


class MockPluginDescriptor(BaseModel):
    """A static plugin mock: the plugin name and its fixed result."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: Any = None

    @field_validator("name")
    @classmethod
    def _name_is_callable(cls, v: str) -> str:
        return check_plugin_name(v)


class Plugin(ABC):
    """What the registry needs from a plugin.

    ``register`` runs once when the plugin is added to the registry;
    ``execute`` runs whenever a component calls the plugin.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Name components use to call the plugin."""

    @abstractmethod
    def register(self, options: dict[str, Any]) -> None:
        """Prepare the plugin.  Raise to refuse registration."""

    @abstractmethod
    def execute(self, *args: Any, **kwargs: Any) -> Any:
        """Run the plugin for a component."""


class DiagnosticKind(StrEnum):
    """Registry error codes the dev loop knows how to explain."""

    PLUGIN_MISSING_FROM_REGISTRY = "PLUGIN_MISSING_FROM_REGISTRY"
    PLUGIN_MISSING_FROM_COMPONENT = "PLUGIN_MISSING_FROM_COMPONENT"

    @classmethod
    def from_code(cls, code: str | None) -> DiagnosticKind | None:
        """Map a raw error code to a known kind, or None."""
        if not code:
            return None
        try:
            return cls(code)
        except ValueError:
            return None


@dataclass(frozen=True)
class RequestEvent:
    """Emitted by the registry on its ``request`` channel for every request."""

    component: str
    status_code: int = 200
    error_code: str | None = None
    error_details: str | None = None

    @property
    def failed(self) -> bool:
        return self.error_code is not None


RequestHandler = Callable[[RequestEvent], None]


class RegistryServer(ABC):
    """What the dev server bootstrapper needs from a registry.

    ``devloop.ui.web.server.Registry`` is the real one; tests pass fakes
    through ``registry_factory``.
    """

    config: RegistryConfig

    @abstractmethod
    def register(self, plugin: Plugin, options: dict[str, Any] | None = None) -> None:
        """Add a plugin.  Raises ``PluginRegistrationError`` when refused."""

    @abstractmethod
    def on(self, event: str, handler: RequestHandler) -> None:
        """Subscribe to an event channel."""

    @abstractmethod
    def start(self) -> RegistryServer:
        """Start serving.  Raises ``OSError`` if the port can't be bound."""

    @abstractmethod
    def stop(self) -> None:
        """Stop serving.  A no-op when not started."""
