"""
Dev registry — Flask app that serves packaged components locally.

This is the local stand-in for a production registry: it renders each
component's packaged template with the data its server module returns,
lets components call registered plugins, and emits a ``request`` event
per request so the dev loop can explain failures.

Routes:
    GET /                  index of packaged components
    GET /<name>            rendered component
    GET /<name>/~info      packaged manifest
"""

from __future__ import annotations

import importlib.util
import logging
import socket
import threading
from pathlib import Path
from typing import Any, Callable

from flask import Flask, jsonify, render_template_string, request
from werkzeug.serving import BaseWSGIServer, make_server

from devloop.core.models.component import PACKAGE_DIR, PACKAGE_MANIFEST, PackagedComponent
from devloop.core.models.registry import (
    DiagnosticKind,
    Plugin,
    RegistryConfig,
    RegistryServer,
    RequestEvent,
    RequestHandler,
    check_plugin_name,
)

logger = logging.getLogger(__name__)

REQUEST_EVENT = "request"


class PluginRegistrationError(Exception):
    """Raised when a plugin can't be added to the registry."""


class PluginNotDeclared(Exception):
    """A component called a plugin its manifest doesn't list."""

    def __init__(self, plugin: str) -> None:
        super().__init__(plugin)
        self.plugin = plugin


class ComponentPlugins:
    """Attribute access to the plugins a component declared.

    ``context.plugins.analytics("page")`` runs the ``analytics`` plugin if
    the component lists it; otherwise raises ``PluginNotDeclared``.
    """

    def __init__(self, declared: list[str], registered: dict[str, Plugin]) -> None:
        self._declared = set(declared)
        self._registered = registered

    def __getattr__(self, name: str) -> Callable[..., Any]:
        if name.startswith("__"):
            raise AttributeError(name)
        if name not in self._declared:
            raise PluginNotDeclared(name)
        return self._registered[name].execute


class ComponentContext:
    """What a component's ``data(context)`` function receives."""

    def __init__(self, params: dict[str, str], plugins: ComponentPlugins, base_url: str) -> None:
        self.params = params
        self.plugins = plugins
        self.base_url = base_url


class Registry(RegistryServer):
    """Local registry bound to one components root.

    Args:
        config: The snapshot built by the dev server bootstrapper.
        host: Interface to bind.  The base URL always says localhost.
    """

    def __init__(self, config: RegistryConfig, host: str = "127.0.0.1") -> None:
        self.config = config
        self.host = host
        self._plugins: dict[str, Plugin] = {}
        self._handlers: dict[str, list[RequestHandler]] = {}
        self._lock = threading.Lock()
        self._server: BaseWSGIServer | None = None
        self._thread: threading.Thread | None = None
        self.app = create_app(self)

    # ── Plugins ─────────────────────────────────────────────────

    @property
    def plugins(self) -> dict[str, Plugin]:
        with self._lock:
            return dict(self._plugins)

    def register(self, plugin: Plugin, options: dict[str, Any] | None = None) -> None:
        """Add a plugin, running its ``register`` hook first.

        Raises:
            PluginRegistrationError: Bad name, duplicate, or the hook raised.
        """
        name = plugin.name
        try:
            check_plugin_name(name)
        except ValueError as e:
            raise PluginRegistrationError(str(e)) from e

        with self._lock:
            if name in self._plugins:
                raise PluginRegistrationError(f"Plugin already registered: {name}")

        try:
            plugin.register(options or {})
        except Exception as e:
            raise PluginRegistrationError(f"Plugin '{name}' failed to register: {e}") from e

        with self._lock:
            self._plugins[name] = plugin
        logger.info("Registered plugin %s", name)

    # ── Events ──────────────────────────────────────────────────

    def on(self, event: str, handler: RequestHandler) -> None:
        """Subscribe to an event channel (only ``request`` is emitted)."""
        with self._lock:
            self._handlers.setdefault(event, []).append(handler)

    def emit(self, event: str, payload: RequestEvent) -> None:
        with self._lock:
            handlers = list(self._handlers.get(event, ()))
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler for %s event failed", event)

    # ── Lifecycle ───────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._server is not None

    @property
    def port(self) -> int:
        """Bound port (differs from the config when it asked for port 0)."""
        if self._server is not None:
            return self._server.socket.getsockname()[1]
        return self.config.port

    def start(self) -> Registry:
        """Bind the port and serve on a daemon thread.

        Raises:
            OSError: If the port can't be bound (``EADDRINUSE`` when taken).
        """
        # Bind here: werkzeug exits the process on bind errors instead of raising
        sock = _listen(self.host, self.config.port)
        try:
            self._server = make_server(
                self.host, self.config.port, self.app, threaded=True, fd=sock.fileno()
            )
        finally:
            sock.close()  # the server holds its own duplicate
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            daemon=True,
            name="dev-registry",
        )
        self._thread.start()
        logger.info("Dev registry listening on %s:%d", self.host, self.port)
        return self

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5)
        self._server = None
        self._thread = None

    # ── Component access ────────────────────────────────────────

    def component_dir(self, name: str) -> Path:
        return Path(self.config.path) / name

    def packaged(self, name: str) -> PackagedComponent | None:
        manifest = self.component_dir(name) / PACKAGE_DIR / PACKAGE_MANIFEST
        if not manifest.is_file():
            return None
        return PackagedComponent.model_validate_json(manifest.read_text(encoding="utf-8"))

    def packaged_names(self) -> list[str]:
        root = Path(self.config.path)
        if not root.is_dir():
            return []
        return sorted(
            d.name for d in root.iterdir() if (d / PACKAGE_DIR / PACKAGE_MANIFEST).is_file()
        )


def create_app(registry: Registry) -> Flask:
    """Create the Flask application serving ``registry``."""
    app = Flask(__name__)

    app.config["COMPONENTS_PATH"] = registry.config.path
    app.config["BASE_URL"] = registry.config.base_url
    app.config["ENV_NAME"] = registry.config.env.get("name", "local")

    @app.get("/")
    def index():  # type: ignore[no-untyped-def]
        base = registry.config.base_url
        return jsonify(
            {
                "href": base,
                "type": registry.config.env.get("name", "local"),
                "components": [f"{base}{name}" for name in registry.packaged_names()],
            }
        )

    @app.get("/<name>/~info")
    def info(name: str):  # type: ignore[no-untyped-def]
        packaged = registry.packaged(name)
        if packaged is None:
            return _not_found(registry, name)
        registry.emit(REQUEST_EVENT, RequestEvent(component=name))
        return jsonify(packaged.model_dump(mode="json"))

    @app.get("/<name>")
    def render(name: str):  # type: ignore[no-untyped-def]
        packaged = registry.packaged(name)
        if packaged is None:
            return _not_found(registry, name)

        registered = registry.plugins
        missing = [p for p in packaged.plugins if p not in registered]
        if missing:
            return _fail(
                registry,
                name,
                501,
                DiagnosticKind.PLUGIN_MISSING_FROM_REGISTRY,
                ", ".join(missing),
            )

        context = ComponentContext(
            params=request.args.to_dict(),
            plugins=ComponentPlugins(packaged.plugins, registered),
            base_url=registry.config.base_url,
        )
        package_dir = registry.component_dir(name) / PACKAGE_DIR

        try:
            data = _component_data(package_dir, packaged, context)
        except PluginNotDeclared as e:
            return _fail(registry, name, 501, DiagnosticKind.PLUGIN_MISSING_FROM_COMPONENT, e.plugin)
        except Exception as e:
            logger.debug("data() of %s failed", name, exc_info=True)
            return _fail(registry, name, 500, "DATA_OBJECT_ERROR", str(e) or repr(e))

        template = (package_dir / packaged.template).read_text(encoding="utf-8")
        html = render_template_string(template, **data)
        registry.emit(REQUEST_EVENT, RequestEvent(component=name))
        return html

    logger.info("Dev registry app created (path=%s)", registry.config.path)
    return app


def _listen(host: str, port: int) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
        sock.listen(128)
    except OSError:
        sock.close()
        raise
    return sock


def _component_data(package_dir: Path, packaged: PackagedComponent, context: ComponentContext) -> dict:
    """Run the packaged server module's ``data(context)``, if there is one."""
    if not packaged.server:
        return {}

    path = package_dir / packaged.server
    spec = importlib.util.spec_from_file_location(f"_devloop_component_{packaged.name}", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    provider = getattr(module, "data", None)
    if provider is None:
        return {}
    result = provider(context)
    if not isinstance(result, dict):
        raise TypeError(f"data() must return a dict, got {type(result).__name__}")
    return result


def _not_found(registry: Registry, name: str):  # type: ignore[no-untyped-def]
    registry.emit(REQUEST_EVENT, RequestEvent(component=name, status_code=404, error_code="NOT_FOUND"))
    return jsonify({"code": "NOT_FOUND", "error": f"component '{name}' not found"}), 404


def _fail(registry: Registry, name: str, status: int, code: str, details: str):  # type: ignore[no-untyped-def]
    registry.emit(
        REQUEST_EVENT,
        RequestEvent(component=name, status_code=status, error_code=str(code), error_details=details),
    )
    return jsonify({"code": str(code), "error": details}), status
