"""
Pip installer — installs missing component dependencies into the running
interpreter's environment.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

from devloop.adapters.base import DependencyInstaller, InstallError

logger = logging.getLogger(__name__)


def _pip_cmd(*args: str) -> list[str]:
    """Build a pip command using the current interpreter.

    Uses ``sys.executable -m pip`` so pip always installs into the same
    environment the dev loop imports from, regardless of PATH.
    """
    return [sys.executable, "-m", "pip", *args]


class PipInstaller(DependencyInstaller):
    """Runs ``pip install`` for the missing import names.

    The working directory is the components root, so a name can also be
    a relative path to a local package.
    """

    def __init__(self, extra_args: list[str] | None = None) -> None:
        self._extra_args = list(extra_args or [])

    @property
    def name(self) -> str:
        return "pip"

    async def install(self, modules: list[str], target_dir: Path) -> None:
        cmd = _pip_cmd("install", "--disable-pip-version-check", *self._extra_args, *modules)
        logger.info("▶ %s (cwd=%s)", " ".join(cmd), target_dir)

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(target_dir),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise InstallError(f"Could not run pip: {e}") from e

        tail: list[str] = []
        assert proc.stdout is not None
        async for raw in proc.stdout:
            line = raw.decode(errors="replace").rstrip()
            logger.debug("pip │ %s", line)
            tail = (tail + [line])[-5:]
        returncode = await proc.wait()

        if returncode != 0:
            detail = "\n".join(tail).strip()
            raise InstallError(
                f"pip install failed (exit {returncode})" + (f": {detail}" if detail else "")
            )
        logger.info("Installed %s", ", ".join(modules))
