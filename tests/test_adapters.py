"""
Tests for the default adapters: discovery, packager, watcher, pip.
"""

import asyncio
import json
import os
import sys
from pathlib import Path

import pytest
from conftest import make_component

from devloop.adapters import installer as installer_mod
from devloop.adapters.base import DiscoveryError, InstallError, WatchEvent
from devloop.adapters.discovery import DirectoryDiscoverer
from devloop.adapters.installer import PipInstaller, _pip_cmd
from devloop.adapters.packager import LocalPackager, PackagingError, package_component
from devloop.adapters.watcher import MtimeWatcher, diff, snapshot
from devloop.core.config.loader import ManifestError
from devloop.core.models.component import PACKAGE_DIR, PACKAGE_MANIFEST


# ── Discovery ───────────────────────────────────────────────────────


class TestDirectoryDiscoverer:
    def test_finds_components_sorted(self, components_dir: Path):
        make_component(components_dir, "header")
        make_component(components_dir, "footer")
        (components_dir / "notes").mkdir()  # no component.yml
        (components_dir / "README.md").write_text("hi")

        found = DirectoryDiscoverer().discover(components_dir)

        assert [p.name for p in found] == ["footer", "header"]
        assert all(p.is_absolute() for p in found)

    def test_skips_hidden_and_private(self, components_dir: Path):
        make_component(components_dir, "page")
        hidden = components_dir / ".cache"
        hidden.mkdir()
        (hidden / "component.yml").write_text("name: cache\n")
        private = components_dir / "_package"
        private.mkdir()
        (private / "component.yml").write_text("name: pkg\n")

        assert [p.name for p in DirectoryDiscoverer().discover(components_dir)] == ["page"]

    def test_empty_root(self, components_dir: Path):
        assert DirectoryDiscoverer().discover(components_dir) == []

    def test_missing_root(self, tmp_path: Path):
        with pytest.raises(DiscoveryError, match="not found"):
            DirectoryDiscoverer().discover(tmp_path / "nope")

    def test_root_is_a_file(self, tmp_path: Path):
        f = tmp_path / "file.txt"
        f.write_text("x")
        with pytest.raises(DiscoveryError, match="Not a directory"):
            DirectoryDiscoverer().discover(f)

    def test_repr(self):
        assert repr(DirectoryDiscoverer()) == "<DirectoryDiscoverer name='directory'>"


# ── Packager ────────────────────────────────────────────────────────


class TestPackager:
    def test_writes_package(self, components_dir: Path):
        component = make_component(
            components_dir,
            "header",
            plugins=["analytics"],
            server="""
            def data(context):
                return {"title": "Hello"}
            """,
        )

        packaged = package_component(component)

        out = component / PACKAGE_DIR
        assert (out / "template.html").read_text() == "<h1>{{ title }}</h1>"
        assert (out / "server.py").exists()
        manifest = json.loads((out / PACKAGE_MANIFEST).read_text())
        assert manifest["name"] == "header"
        assert manifest["plugins"] == ["analytics"]
        assert manifest["production"] is False
        assert packaged.server == "server.py"
        assert len(packaged.template_hash) == 64
        assert not (component / f"{PACKAGE_DIR}.tmp").exists()

    def test_repackage_replaces_output(self, components_dir: Path):
        component = make_component(components_dir, "header")
        package_component(component)
        (component / PACKAGE_DIR / "stale.txt").write_text("old")

        package_component(component, production=True)

        assert not (component / PACKAGE_DIR / "stale.txt").exists()
        manifest = json.loads((component / PACKAGE_DIR / PACKAGE_MANIFEST).read_text())
        assert manifest["production"] is True

    def test_server_syntax_error(self, components_dir: Path):
        component = make_component(components_dir, "footer", server="def data(:\n    pass\n")

        with pytest.raises(SyntaxError) as exc:
            package_component(component)

        assert exc.value.filename.endswith("server.py")
        assert not (component / PACKAGE_DIR).exists()

    def test_template_syntax_error(self, components_dir: Path):
        component = make_component(components_dir, "footer", template="{% if x %}\n<p>")

        with pytest.raises(SyntaxError) as exc:
            package_component(component)

        assert exc.value.filename.endswith("template.html")

    def test_missing_template(self, components_dir: Path):
        component = make_component(components_dir, "footer")
        (component / "template.html").unlink()

        with pytest.raises(PackagingError, match="Template not found"):
            package_component(component)

    def test_invalid_manifest(self, components_dir: Path):
        component = make_component(components_dir, "footer")
        (component / "component.yml").write_text("name: [unclosed\n")

        with pytest.raises(ManifestError):
            package_component(component)

    def test_async_wrapper(self, components_dir: Path):
        component = make_component(components_dir, "header")
        asyncio.run(LocalPackager().package(component))
        assert (component / PACKAGE_DIR / PACKAGE_MANIFEST).is_file()


# ── Watcher ─────────────────────────────────────────────────────────


class TestWatcher:
    def test_snapshot_ignores_package_output(self, components_dir: Path):
        component = make_component(components_dir, "header")
        package_component(component)
        (component / ".hidden").write_text("x")
        cache = component / "__pycache__"
        cache.mkdir()
        (cache / "server.cpython.pyc").write_bytes(b"")

        names = sorted(p.name for p in snapshot([component]))

        assert names == ["component.yml", "template.html"]

    def test_diff_detects_add_modify_remove(self):
        a, b, c = Path("/x/a"), Path("/x/b"), Path("/x/c")
        before = {a: 1.0, b: 1.0}
        after = {a: 2.0, c: 1.0}
        assert diff(before, after) == [a, b, c]

    def test_diff_unchanged(self):
        same = {Path("/x/a"): 1.0}
        assert diff(same, dict(same)) == []

    def test_poll_reports_changed_file(self, components_dir: Path):
        component = make_component(components_dir, "header")
        template = component / "template.html"
        events: list[WatchEvent] = []

        async def scenario() -> None:
            watcher = MtimeWatcher(poll_interval=0.01)
            task = watcher.watch([component], components_dir, events.append)
            await asyncio.sleep(0.05)
            stat = template.stat()
            os.utime(template, (stat.st_atime, stat.st_mtime + 5))
            for _ in range(100):
                if events:
                    break
                await asyncio.sleep(0.01)
            task.cancel()

        asyncio.run(scenario())

        assert events[0] == WatchEvent(path=template)


# ── Pip installer ───────────────────────────────────────────────────


class TestPipInstaller:
    def test_command_uses_current_interpreter(self):
        assert _pip_cmd("install", "x") == [sys.executable, "-m", "pip", "install", "x"]

    def test_success(self, tmp_path: Path, monkeypatch):
        monkeypatch.setattr(
            installer_mod, "_pip_cmd", lambda *args: [sys.executable, "-c", "print('ok')"]
        )
        asyncio.run(PipInstaller().install(["left_pad"], tmp_path))

    def test_failure_raises_with_output_tail(self, tmp_path: Path, monkeypatch):
        script = "import sys; print('No matching distribution found for left_pad'); sys.exit(1)"
        monkeypatch.setattr(installer_mod, "_pip_cmd", lambda *args: [sys.executable, "-c", script])

        with pytest.raises(InstallError, match="exit 1.*No matching distribution"):
            asyncio.run(PipInstaller().install(["left_pad"], tmp_path))

    def test_runs_in_target_dir(self, tmp_path: Path, monkeypatch):
        script = "import os, sys; sys.exit(0 if os.path.exists('marker') else 3)"
        (tmp_path / "marker").write_text("")
        monkeypatch.setattr(installer_mod, "_pip_cmd", lambda *args: [sys.executable, "-c", script])

        asyncio.run(PipInstaller().install(["x"], tmp_path))
