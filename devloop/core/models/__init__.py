"""
Domain models — Pydantic types for the dev loop.

All models are re-exported here for convenient access:

    from devloop.core.models import ComponentManifest, RegistryConfig
"""

from devloop.core.models.component import (
    MANIFEST_FILE,
    PACKAGE_DIR,
    PACKAGE_MANIFEST,
    ComponentManifest,
    PackagedComponent,
)
from devloop.core.models.registry import (
    DEFAULT_PORT,
    DiagnosticKind,
    MockPluginDescriptor,
    Plugin,
    RegistryConfig,
    RegistryServer,
    RequestEvent,
    check_plugin_name,
)

__all__ = [
    # component.py
    "ComponentManifest",
    "DEFAULT_PORT",
    "DiagnosticKind",
    "MANIFEST_FILE",
    "MockPluginDescriptor",
    "PACKAGE_DIR",
    "PACKAGE_MANIFEST",
    "PackagedComponent",
    "Plugin",
    # registry.py
    "RegistryConfig",
    "RegistryServer",
    "RequestEvent",
    "check_plugin_name",
]
