"""
Dev server bootstrap — configure, populate and start the local registry.

Start-up order:
    1. build the RegistryConfig snapshot
    2. create the registry
    3. register plugin mocks (a failure here skips the start)
    4. subscribe to ``request`` diagnostics
    5. bind the port

Start failures are reported and returned, never raised: the dev loop
keeps watching and packaging so the developer can fix things and restart
the server out of band.
"""

from __future__ import annotations

import asyncio
import errno
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from devloop.core.models.registry import (
    DEFAULT_PORT,
    DiagnosticKind,
    MockPluginDescriptor,
    RegistryConfig,
    RegistryServer,
    RequestEvent,
)
from devloop.core.observability.reporter import Reporter
from devloop.core.services.plugin_mocks import StaticMockPlugin
from devloop.ui.web.server import REQUEST_EVENT, PluginRegistrationError, Registry

logger = logging.getLogger(__name__)

RegistryFactory = Callable[[RegistryConfig], RegistryServer]


# ── Diagnostics ─────────────────────────────────────────────────

# (message template, command to suggest or None, follow-up)
_HINTS: dict[DiagnosticKind, tuple[str, str | None, str]] = {
    DiagnosticKind.PLUGIN_MISSING_FROM_REGISTRY: (
        "Looks like you are trying to use a plugin in the dev mode ({details}).",
        'devloop mock plugin <pluginName> "some value"',
        "You need to mock it doing ",
    ),
    DiagnosticKind.PLUGIN_MISSING_FROM_COMPONENT: (
        "Looks like you are trying to use a plugin you haven't registered ({details}).",
        None,
        "You need to register it editing your component's component.yml",
    ),
}


def explain(event: RequestEvent, reporter: Reporter) -> bool:
    """Turn a known registry error into a remediation hint.

    Returns:
        True if the event carried a known diagnostic.
    """
    kind = DiagnosticKind.from_code(event.error_code)
    if kind is None:
        return False

    message, command, follow_up = _HINTS[kind]
    reporter.error(message.format(details=event.error_details or event.component))
    reporter.hint(follow_up, command)
    return True


# ── Bootstrap ───────────────────────────────────────────────────


@dataclass
class ServerStartResult:
    """Outcome of a dev server start attempt."""

    registry: RegistryServer | None = None
    started: bool = False
    error: str | None = None

    def to_dict(self) -> dict:
        return {"started": self.started, "error": self.error}


class DevServer:
    """Bootstraps the dev registry.

    Args:
        reporter: Narrative sink.
        components_dir: Components root served by the registry.
        port: Port to listen on.
        registry_factory: Builds the registry from its config.
    """

    def __init__(
        self,
        reporter: Reporter,
        components_dir: Path,
        port: int = DEFAULT_PORT,
        registry_factory: RegistryFactory = Registry,
    ) -> None:
        self._reporter = reporter
        self._components_dir = components_dir
        self._port = port
        self._registry_factory = registry_factory

    def build_config(self, dependencies: list[str]) -> RegistryConfig:
        return RegistryConfig.for_dev(
            path=str(self._components_dir.resolve()),
            port=self._port,
            dependencies=dependencies,
        )

    def start(
        self,
        dependencies: list[str],
        mocks: list[MockPluginDescriptor],
    ) -> ServerStartResult:
        config = self.build_config(dependencies)
        registry = self._registry_factory(config)
        result = ServerStartResult(registry=registry)

        try:
            self._register_mocks(registry, mocks)
        except PluginRegistrationError as e:
            self._reporter.error(str(e))
            result.error = str(e)
            return result

        self._subscribe(registry)

        self._reporter.step(f"Starting dev registry on http://localhost:{self._port}...")
        try:
            registry.start()
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                result.error = (
                    f"The port {self._port} is already in use. "
                    "Specify the optional port parameter to use another port."
                )
            else:
                result.error = str(e)
            self._reporter.error(result.error)
            return result

        self._reporter.ok()
        result.started = True
        return result

    def _register_mocks(self, registry: RegistryServer, mocks: list[MockPluginDescriptor]) -> None:
        if not mocks:
            return

        self._reporter.warn("Registering mocked plugins...")
        for descriptor in mocks:
            plugin = StaticMockPlugin(descriptor)
            self._reporter.item(f"{plugin.name} () => {plugin.execute()}")
            registry.register(plugin)

    def _subscribe(self, registry: RegistryServer) -> None:
        # Requests are served on the registry's thread; bring the narrative
        # back onto the event loop when there is one.
        try:
            loop: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        def on_request(event: RequestEvent) -> None:
            if not event.failed:
                return
            if loop is not None and loop.is_running():
                loop.call_soon_threadsafe(explain, event, self._reporter)
            else:
                explain(event, self._reporter)

        registry.on(REQUEST_EVENT, on_request)
