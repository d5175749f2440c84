"""
Dev use case — discover, load dependencies, package, serve, watch.

    discovering → loading_dependencies → packaging → serving

Packaging failures loop back into packaging after the retry delay and
never end the run.  Only discovery ending the run early (error or no
components) and installer failures are terminal.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from devloop.adapters import (
    ChangeWatcher,
    ComponentDiscoverer,
    ComponentPackager,
    DependencyInstaller,
    DirectoryDiscoverer,
    DiscoveryError,
    LocalPackager,
    MtimeWatcher,
    PipInstaller,
    WatchEvent,
)
from devloop.core.config.loader import DevSettings, load_local_config
from devloop.core.observability.reporter import Reporter
from devloop.core.reliability.retry_policy import RetryPolicy
from devloop.core.services.dependencies import DependencyLoader
from devloop.core.services.dev_server import DevServer, RegistryFactory, ServerStartResult
from devloop.core.services.packaging import PackagingCoordinator
from devloop.core.services.plugin_mocks import load_plugin_mocks
from devloop.ui.web.server import Registry

logger = logging.getLogger(__name__)

NO_COMPONENTS = (
    "An error happened when initialising the dev runner: "
    "no components found in specified path"
)


class DevPhase(StrEnum):
    DISCOVERING = "discovering"
    LOADING_DEPENDENCIES = "loading_dependencies"
    PACKAGING = "packaging"
    SERVING = "serving"
    STOPPED = "stopped"


@dataclass
class DevResult:
    """What a dev run did before it stopped (or before it started serving)."""

    phase: DevPhase = DevPhase.DISCOVERING
    components: list[Path] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    server: ServerStartResult | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        result: dict = {"phase": str(self.phase)}
        if self.error:
            result["error"] = self.error
        result["components"] = [str(c) for c in self.components]
        result["dependencies"] = list(self.dependencies)
        if self.server is not None:
            result["server"] = self.server.to_dict()
        return result


@dataclass
class Collaborators:
    """Everything the dev loop delegates to."""

    discoverer: ComponentDiscoverer
    installer: DependencyInstaller
    packager: ComponentPackager
    watcher: ChangeWatcher
    registry_factory: RegistryFactory = Registry


def default_collaborators(settings: DevSettings) -> Collaborators:
    """The real discoverer, pip, local packager and mtime watcher."""
    return Collaborators(
        discoverer=DirectoryDiscoverer(),
        installer=PipInstaller(),
        packager=LocalPackager(),
        watcher=MtimeWatcher(poll_interval=settings.poll_interval),
    )


class DevRunner:
    """Runs the dev loop for one components root."""

    def __init__(
        self,
        settings: DevSettings,
        collaborators: Collaborators,
        reporter: Reporter,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.settings = settings
        self.collaborators = collaborators
        self.reporter = reporter
        self.result = DevResult()
        self.loader = DependencyLoader(
            collaborators.installer,
            reporter,
            settings.components_dir,
            invalidate_cache=settings.invalidate_module_cache,
        )
        self.coordinator = PackagingCoordinator(
            collaborators.packager,
            reporter,
            retry_policy or RetryPolicy(delay=settings.retry_delay),
        )
        self.dev_server = DevServer(
            reporter,
            settings.components_dir,
            port=settings.port,
            registry_factory=collaborators.registry_factory,
        )
        self.watch_task: asyncio.Task | None = None

    async def start(self) -> DevResult:
        """Run up to (and including) attaching the watcher.

        Returns as soon as the loop is serving, or earlier when discovery
        ends the run.  ``InstallError`` and ``ConfigError`` propagate.
        """
        root = self.settings.components_dir

        # ── Discovering ─────────────────────────────────────────
        self.reporter.step("Looking for components...")
        try:
            components = self.collaborators.discoverer.discover(root)
        except DiscoveryError as e:
            self.reporter.error(str(e))
            self.result.error = str(e)
            return self.result

        if not components:
            self.reporter.error(NO_COMPONENTS)
            self.result.error = NO_COMPONENTS
            return self.result

        self.reporter.ok()
        for component in components:
            self.reporter.item(str(component))
        self.result.components = components

        # ── Loading dependencies ────────────────────────────────
        self.result.phase = DevPhase.LOADING_DEPENDENCIES
        self.result.dependencies = await self.loader.ensure_loaded(components)

        # ── Packaging ───────────────────────────────────────────
        self.result.phase = DevPhase.PACKAGING
        task = self.coordinator.package_all(components)
        if task is not None:
            await task

        # ── Serving ─────────────────────────────────────────────
        mocks = load_plugin_mocks(load_local_config(self.settings.config_path))
        self.result.server = self.dev_server.start(self.result.dependencies, mocks)

        self.watch_task = self.collaborators.watcher.watch(components, root, self.on_change)
        self.result.phase = DevPhase.SERVING
        return self.result

    def on_change(self, event: WatchEvent) -> None:
        """Watcher callback: report, then repackage everything."""
        if event.error is not None:
            self.reporter.error(f"An error happened: {event.error}")
            return

        self.reporter.warn(f"Changes detected on file: {event.path}")
        self.coordinator.package_all(self.result.components)

    async def serve_forever(self) -> None:
        """Keep the loop alive until cancelled, then stop the registry."""
        try:
            if self.watch_task is not None:
                await self.watch_task
            else:
                await asyncio.Event().wait()
        finally:
            self.stop()

    def stop(self) -> None:
        if self.watch_task is not None and not self.watch_task.done():
            self.watch_task.cancel()
        server = self.result.server
        if server is not None and server.started and server.registry is not None:
            server.registry.stop()
        self.result.phase = DevPhase.STOPPED


async def run_dev(
    settings: DevSettings,
    collaborators: Collaborators,
    reporter: Reporter,
) -> DevResult:
    """Start the dev loop and serve until cancelled.

    Returns early (without serving) when discovery ends the run.
    """
    runner = DevRunner(settings, collaborators, reporter)
    result = await runner.start()
    if result.phase is not DevPhase.SERVING:
        return result
    await runner.serve_forever()
    return result
