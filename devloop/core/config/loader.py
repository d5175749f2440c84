"""
Configuration loader — dev settings, the local devloop.json, and
component manifests.

Three sources of configuration:

    DevSettings      CLI options > DEVLOOP_* env vars > defaults
    devloop.json     optional, working directory root (plugin mocks)
    component.yml    one per component, validated into ComponentManifest
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from devloop.core.models.component import MANIFEST_FILE, ComponentManifest
from devloop.core.models.registry import DEFAULT_PORT, check_plugin_name

logger = logging.getLogger(__name__)

# Default local config filename
LOCAL_CONFIG_FILE = "devloop.json"

_ENV_PREFIX = "DEVLOOP_"
_TRUTHY = ("1", "true", "yes", "on")


class ConfigError(Exception):
    """Raised when configuration is invalid or unreadable."""


class ManifestError(ConfigError):
    """Raised when a component.yml is missing or invalid."""


# ── Settings ────────────────────────────────────────────────────


class DevSettings(BaseModel):
    """Runtime settings for one ``devloop dev`` process."""

    components_dir: Path
    port: int = DEFAULT_PORT
    retry_delay: float = 10.0
    poll_interval: float = 1.0
    invalidate_module_cache: bool = True
    config_path: Path = Field(default_factory=lambda: Path.cwd() / LOCAL_CONFIG_FILE)

    @classmethod
    def from_env(cls, components_dir: Path, **overrides: Any) -> DevSettings:
        """Build settings from env vars, letting explicit overrides win.

        Overrides whose value is None are ignored so CLI options that
        were not given fall through to the environment.
        """
        values: dict[str, Any] = {"components_dir": components_dir}

        env = os.environ
        if env.get(f"{_ENV_PREFIX}PORT"):
            values["port"] = env[f"{_ENV_PREFIX}PORT"]
        if env.get(f"{_ENV_PREFIX}RETRY_DELAY"):
            values["retry_delay"] = env[f"{_ENV_PREFIX}RETRY_DELAY"]
        if env.get(f"{_ENV_PREFIX}POLL_INTERVAL"):
            values["poll_interval"] = env[f"{_ENV_PREFIX}POLL_INTERVAL"]
        if env.get(f"{_ENV_PREFIX}INVALIDATE_MODULE_CACHE"):
            values["invalidate_module_cache"] = (
                env[f"{_ENV_PREFIX}INVALIDATE_MODULE_CACHE"].lower() in _TRUTHY
            )

        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigError(f"Invalid settings: {e}") from e


# ── Local config (devloop.json) ─────────────────────────────────


class PluginMocks(BaseModel):
    static: dict[str, Any] = Field(default_factory=dict)

    @field_validator("static")
    @classmethod
    def _names_are_callable(cls, v: dict[str, Any]) -> dict[str, Any]:
        for name in v:
            check_plugin_name(name)
        return v


class MocksConfig(BaseModel):
    plugins: PluginMocks = Field(default_factory=PluginMocks)


class LocalConfig(BaseModel):
    """Shape of devloop.json. Unknown keys are kept and round-tripped."""

    model_config = {"extra": "allow"}

    mocks: MocksConfig = Field(default_factory=MocksConfig)


def load_local_config(path: Path | None = None) -> LocalConfig:
    """Load devloop.json, or an empty config when the file is absent.

    Raises:
        ConfigError: If the file exists but is not a valid config.
    """
    if path is None:
        path = Path.cwd() / LOCAL_CONFIG_FILE

    if not path.is_file():
        logger.debug("No local config at %s", path)
        return LocalConfig()

    data = _read_json(path)
    if data.get("mocks") is None:
        data.pop("mocks", None)

    try:
        return LocalConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid local configuration in {path}: {e}") from e


def add_static_mock(path: Path, name: str, value: Any) -> LocalConfig:
    """Add (or replace) a static plugin mock in devloop.json.

    Creates the file when it doesn't exist. Other keys are preserved.

    Raises:
        ConfigError: If ``name`` can't be a plugin name, or the file is invalid.
    """
    try:
        check_plugin_name(name)
    except ValueError as e:
        raise ConfigError(str(e)) from e

    config = load_local_config(path)
    config.mocks.plugins.static[name] = value

    path.write_text(
        json.dumps(config.model_dump(mode="json"), indent=2) + "\n",
        encoding="utf-8",
    )
    logger.info("Mocked plugin '%s' in %s", name, path)
    return config


def _read_json(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a JSON object in {path}, got {type(data).__name__}")
    return data


# ── Component manifests ─────────────────────────────────────────


def load_manifest(component_dir: Path) -> ComponentManifest:
    """Read and validate ``component.yml`` from a component directory.

    Raises:
        ManifestError: If the manifest is missing or invalid.
    """
    path = component_dir / MANIFEST_FILE
    if not path.is_file():
        raise ManifestError(f"Component manifest not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ManifestError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ManifestError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        return ComponentManifest.model_validate(data)
    except ValidationError as e:
        raise ManifestError(f"Invalid component manifest {path}: {e}") from e
