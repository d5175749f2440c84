"""
Shared test fixtures, fakes for every dev-loop collaborator, and a
reporter that records the narrative.
"""

from __future__ import annotations

import asyncio
import logging
import re
import textwrap
from pathlib import Path
from typing import Any

import pytest

from devloop.adapters.base import (
    ChangeWatcher,
    ComponentDiscoverer,
    ComponentPackager,
    DependencyInstaller,
    DiscoveryError,
    InstallError,
    WatchCallback,
)
from devloop.core.models.registry import RegistryConfig, RegistryServer
from devloop.core.observability.reporter import Reporter


# ── Reporter ────────────────────────────────────────────────────


class RecordingReporter(Reporter):
    """Keeps every narrative line as (kind, message)."""

    def __init__(self) -> None:
        self.lines: list[tuple[str, str]] = []

    def step(self, message: str) -> None:
        self.lines.append(("step", message))

    def ok(self, message: str = "OK") -> None:
        self.lines.append(("ok", message))

    def item(self, text: str) -> None:
        self.lines.append(("item", text))

    def warn(self, message: str) -> None:
        self.lines.append(("warn", message))

    def error(self, message: str) -> None:
        self.lines.append(("error", message))

    @property
    def messages(self) -> list[str]:
        return [message for _, message in self.lines]

    def of(self, kind: str) -> list[str]:
        return [message for k, message in self.lines if k == kind]

    def contains(self, fragment: str) -> bool:
        return any(fragment in message for message in self.messages)


# ── Collaborator fakes ──────────────────────────────────────────


class FakeDiscoverer(ComponentDiscoverer):
    name = "fake"

    def __init__(self, components: list[Path] | None = None, error: str | None = None) -> None:
        self.components = components or []
        self.error = error
        self.calls: list[Path] = []

    def discover(self, root: Path) -> list[Path]:
        self.calls.append(root)
        if self.error:
            raise DiscoveryError(self.error)
        return list(self.components)


class FakeInstaller(DependencyInstaller):
    """Records installs; ``available`` is shared with ``FakeImporter``."""

    name = "fake"

    def __init__(self, available: set[str] | None = None, error: str | None = None) -> None:
        self.available = available if available is not None else set()
        self.error = error
        self.calls: list[tuple[list[str], Path]] = []

    async def install(self, modules: list[str], target_dir: Path) -> None:
        self.calls.append((list(modules), target_dir))
        if self.error:
            raise InstallError(self.error)
        # "markdown>=3" makes "markdown" importable
        self.available.update(re.split(r"[<>=!~]", module)[0] for module in modules)


class FakeImporter:
    def __init__(self, available: set[str]) -> None:
        self.available = available
        self.calls: list[str] = []

    def __call__(self, name: str) -> object:
        self.calls.append(name)
        if name not in self.available:
            raise ModuleNotFoundError(f"No module named {name!r}")
        return object()


class FakePackager(ComponentPackager):
    """Packages nothing; fails per component name from a queue of errors.

    ``gate`` (an asyncio.Event) holds every call until it is set.
    """

    name = "fake"

    def __init__(
        self,
        failures: dict[str, list[BaseException]] | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.failures = failures or {}
        self.gate = gate
        self.calls: list[Path] = []
        self.production_flags: list[bool] = []
        self.active = 0
        self.max_active = 0

    async def package(self, component_dir: Path, production: bool = False) -> None:
        self.calls.append(component_dir)
        self.production_flags.append(production)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            errors = self.failures.get(component_dir.name)
            if errors:
                raise errors.pop(0)
        finally:
            self.active -= 1

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.calls]


class FakeWatcher(ChangeWatcher):
    name = "fake"

    def __init__(self) -> None:
        self.calls: list[tuple[list[Path], Path]] = []
        self.on_event: WatchCallback | None = None
        self.task: asyncio.Task | None = None

    def watch(self, components: list[Path], root: Path, on_event: WatchCallback) -> asyncio.Task:
        self.calls.append((list(components), root))
        self.on_event = on_event
        self.task = asyncio.ensure_future(asyncio.Event().wait())
        return self.task


class FakeRegistry(RegistryServer):
    """Registry stand-in recording what the bootstrapper did to it."""

    def __init__(
        self,
        config: RegistryConfig,
        start_error: OSError | None = None,
        register_error: Exception | None = None,
    ) -> None:
        self.config = config
        self.start_error = start_error
        self.register_error = register_error
        self.registered: list[Any] = []
        self.handlers: dict[str, list] = {}
        self.started = False
        self.stopped = False

    def register(self, plugin: Any, options: dict | None = None) -> None:
        if self.register_error is not None:
            raise self.register_error
        self.registered.append(plugin)

    def on(self, event: str, handler) -> None:  # type: ignore[no-untyped-def]
        self.handlers.setdefault(event, []).append(handler)

    def emit(self, event: str, payload: Any) -> None:
        for handler in self.handlers.get(event, []):
            handler(payload)

    def start(self) -> FakeRegistry:
        if self.start_error is not None:
            raise self.start_error
        self.started = True
        return self

    def stop(self) -> None:
        self.stopped = True


class RegistryRecorder:
    """``registry_factory`` that keeps the registries it built."""

    def __init__(
        self,
        start_error: OSError | None = None,
        register_error: Exception | None = None,
    ) -> None:
        self.start_error = start_error
        self.register_error = register_error
        self.built: list[FakeRegistry] = []

    def __call__(self, config: RegistryConfig) -> FakeRegistry:
        registry = FakeRegistry(config, self.start_error, self.register_error)
        self.built.append(registry)
        return registry


# ── Component fixtures ──────────────────────────────────────────


def make_component(
    root: Path,
    name: str,
    *,
    dependencies: list[str] | None = None,
    plugins: list[str] | None = None,
    template: str = "<h1>{{ title }}</h1>",
    server: str | None = None,
) -> Path:
    """Write a component directory with a component.yml."""
    component = root / name
    component.mkdir(parents=True)

    lines = [f"name: {name}", "version: 1.0.0"]
    if server is not None:
        lines.append("server: server.py")
        (component / "server.py").write_text(textwrap.dedent(server))
    if dependencies:
        lines.append("dependencies:")
        lines.extend(f"  - {dep}" for dep in dependencies)
    if plugins:
        lines.append("plugins:")
        lines.extend(f"  - {plugin}" for plugin in plugins)

    (component / "component.yml").write_text("\n".join(lines) + "\n")
    (component / "template.html").write_text(template)
    return component


@pytest.fixture(autouse=True)
def _restore_logging():
    """setup_logging replaces the root handlers; put them back after each test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def components_dir(tmp_path: Path) -> Path:
    """Return an empty components root."""
    root = tmp_path / "components"
    root.mkdir()
    return root


@pytest.fixture
def header_footer(components_dir: Path) -> list[Path]:
    """Two dependency-free components, in discovery order."""
    return [
        make_component(components_dir, "header"),
        make_component(components_dir, "footer"),
    ]
