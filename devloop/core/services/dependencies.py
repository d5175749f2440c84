"""
Dependency loader — make sure every module the components need imports.

One pass computes the union of the components' declared dependencies and
tries to import each one.  Anything that fails goes to the installer, and
then the whole pass runs again from scratch (manifests re-read, imports
retried) until nothing is missing.  There is no retry bound: only an
installer failure stops the loop.
"""

from __future__ import annotations

import importlib
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from devloop.adapters.base import DependencyInstaller, InstallError
from devloop.core.config.loader import load_manifest
from devloop.core.observability.reporter import Reporter

logger = logging.getLogger(__name__)

Importer = Callable[[str], object]


@dataclass
class DependencyReport:
    """Outcome of one load pass."""

    dependencies: list[str] = field(default_factory=list)
    requirements: dict[str, str] = field(default_factory=dict)
    loaded: dict[str, bool] = field(default_factory=dict)

    @property
    def missing(self) -> list[str]:
        return [name for name in self.dependencies if not self.loaded.get(name)]

    @property
    def satisfied(self) -> bool:
        return not self.missing

    @property
    def missing_requirements(self) -> list[str]:
        """What to hand the installer: pinned where a manifest pins it."""
        return [self.requirements.get(name, name) for name in self.missing]


def component_requirements(components: list[Path]) -> dict[str, str]:
    """Import name to pip requirement, over all declared dependencies.

    Sorted by name.  When components disagree, a pinned requirement wins
    over a bare name.
    """
    requirements: dict[str, str] = {}
    for component in components:
        manifest = load_manifest(component)
        for name in manifest.dependencies:
            requirement = manifest.requirement(name)
            if requirement != name or name not in requirements:
                requirements[name] = requirement
    return dict(sorted(requirements.items()))


def component_dependencies(components: list[Path]) -> list[str]:
    """Sorted, deduplicated union of all declared dependencies."""
    return list(component_requirements(components))


def forget_module(name: str) -> None:
    """Drop a module (and its submodules) from the import cache."""
    prefix = f"{name}."
    for cached in [m for m in sys.modules if m == name or m.startswith(prefix)]:
        del sys.modules[cached]


class DependencyLoader:
    """Loads component dependencies, installing whatever is missing.

    Args:
        installer: Collaborator that installs missing modules.
        reporter: Narrative sink.
        target_dir: Directory handed to the installer (components root).
        invalidate_cache: Before each attempt, refresh the import system's
            finder caches and forget any cached import of a module that was
            missing in an earlier pass, so a module installed by that pass
            is picked up without a restart.  Modules that loaded fine are
            left alone.  Turn off where the interpreter's module cache must
            not be touched; freshness then needs a restart.
        importer: Import function, ``importlib.import_module`` by default.
    """

    def __init__(
        self,
        installer: DependencyInstaller,
        reporter: Reporter,
        target_dir: Path,
        *,
        invalidate_cache: bool = True,
        importer: Importer = importlib.import_module,
    ) -> None:
        self._installer = installer
        self._reporter = reporter
        self._target_dir = target_dir
        self._invalidate_cache = invalidate_cache
        self._importer = importer
        self.passes = 0
        self._previously_missing: set[str] = set()

    def load_once(self, components: list[Path]) -> DependencyReport:
        """Try to import every dependency once.  Never raises on import errors."""
        self.passes += 1
        requirements = component_requirements(components)
        report = DependencyReport(dependencies=list(requirements), requirements=requirements)

        if self._invalidate_cache and report.dependencies:
            importlib.invalidate_caches()

        for name in report.dependencies:
            if self._invalidate_cache and name in self._previously_missing:
                forget_module(name)
            try:
                self._importer(name)
            except Exception as e:  # ImportError, or the module blew up on import
                self._reporter.error(f"Error loading module: {name} => {e!r}")
                report.loaded[name] = False
            else:
                report.loaded[name] = True

        self._previously_missing.update(report.missing)

        logger.debug(
            "Dependency pass %d: %d/%d loaded",
            self.passes,
            len(report.dependencies) - len(report.missing),
            len(report.dependencies),
        )
        return report

    async def ensure_loaded(self, components: list[Path]) -> list[str]:
        """Load, install, reload until nothing is missing.

        Returns:
            The full dependency set of the final pass.

        Raises:
            InstallError: If the installer fails.  Not retried.
        """
        while True:
            self._reporter.step("Ensuring dependencies are loaded...")
            report = self.load_once(components)
            if report.satisfied:
                self._reporter.ok()
                return report.dependencies

            await self._install(report)

    async def _install(self, report: DependencyReport) -> None:
        self._reporter.warn(f"Trying to install missing modules: {report.missing}")
        self._reporter.warn(
            "If you aren't connected to the internet, or pip isn't configured "
            "then this step will fail"
        )
        try:
            await self._installer.install(report.missing_requirements, self._target_dir)
        except InstallError as e:
            self._reporter.error(str(e))
            raise
