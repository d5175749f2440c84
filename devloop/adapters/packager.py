"""
Local packager — turns a component directory into ``_package/``.

Packaging a component:

    1. validate component.yml
    2. parse the Jinja template (TemplateSyntaxError on bad markup)
    3. compile the server module, if any (SyntaxError on bad Python)
    4. write template, server and package.json into ``_package/``

The output directory is rebuilt from a staging directory and swapped in,
so the registry never reads a half-written package.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import shutil
import time
from pathlib import Path

import jinja2

from devloop.adapters.base import ComponentPackager
from devloop.core.config.loader import load_manifest
from devloop.core.models.component import PACKAGE_DIR, PACKAGE_MANIFEST, PackagedComponent

logger = logging.getLogger(__name__)


class PackagingError(Exception):
    """Raised when a component can't be packaged for a non-syntax reason."""


class LocalPackager(ComponentPackager):
    @property
    def name(self) -> str:
        return "local"

    async def package(self, component_dir: Path, production: bool = False) -> None:
        # File I/O and compilation are blocking; the coordinator never
        # runs two of these at once.
        await asyncio.to_thread(package_component, component_dir, production)


def package_component(component_dir: Path, production: bool = False) -> PackagedComponent:
    """Build ``component_dir/_package`` synchronously and return its manifest."""
    start = time.monotonic()
    manifest = load_manifest(component_dir)

    template_path = component_dir / manifest.template
    if not template_path.is_file():
        raise PackagingError(f"Template not found: {template_path}")
    template_src = template_path.read_text(encoding="utf-8")

    try:
        jinja2.Environment().parse(template_src, name=manifest.template, filename=str(template_path))
    except jinja2.TemplateSyntaxError as e:
        # Surface as a SyntaxError so it's reported like broken Python
        raise SyntaxError(e.message, (str(template_path), e.lineno, None, None)) from e

    server_src: str | None = None
    if manifest.server:
        server_path = component_dir / manifest.server
        if not server_path.is_file():
            raise PackagingError(f"Server module not found: {server_path}")
        server_src = server_path.read_text(encoding="utf-8")
        compile(server_src, str(server_path), "exec")

    packaged = PackagedComponent(
        name=manifest.name,
        version=manifest.version,
        template=template_path.name,
        template_hash=_sha256(template_src),
        server=Path(manifest.server).name if manifest.server else None,
        server_hash=_sha256(server_src) if server_src is not None else None,
        dependencies=manifest.dependencies,
        plugins=manifest.plugins,
        production=production,
        packaged_at=time.strftime("%Y-%m-%dT%H:%M:%S%z"),
    )

    out_dir = component_dir / PACKAGE_DIR
    staging = component_dir / f"{PACKAGE_DIR}.tmp"
    if staging.exists():
        shutil.rmtree(staging)
    staging.mkdir()

    (staging / packaged.template).write_text(template_src, encoding="utf-8")
    if server_src is not None and packaged.server:
        (staging / packaged.server).write_text(server_src, encoding="utf-8")
    (staging / PACKAGE_MANIFEST).write_text(
        packaged.model_dump_json(indent=2) + "\n",
        encoding="utf-8",
    )

    if out_dir.exists():
        shutil.rmtree(out_dir)
    staging.rename(out_dir)

    logger.debug(
        "Packaged %s@%s in %dms",
        packaged.name,
        packaged.version,
        int((time.monotonic() - start) * 1000),
    )
    return packaged


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
