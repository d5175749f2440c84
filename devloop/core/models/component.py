"""
Component model — a servable unit discovered under the components root.

Each component is a directory holding a ``component.yml`` manifest. The
manifest declares the template to render, an optional server module that
provides the template data, the Python modules it needs at runtime, and
the registry plugins it is allowed to call.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from devloop.core.models.registry import check_plugin_name

MANIFEST_FILE = "component.yml"
PACKAGE_DIR = "_package"
PACKAGE_MANIFEST = "package.json"


class ComponentManifest(BaseModel):
    """Declared identity of a component (from component.yml)."""

    name: str
    version: str = "1.0.0"
    description: str = ""
    template: str = "template.html"
    server: str | None = None
    dependencies: list[str] = Field(default_factory=list)
    requirements: dict[str, str] = Field(default_factory=dict)
    plugins: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _name_is_url_safe(cls, v: str) -> str:
        if not v or "/" in v or v.startswith((".", "~", "_")):
            raise ValueError(f"invalid component name: {v!r}")
        return v

    @model_validator(mode="before")
    @classmethod
    def _deps_from_mapping(cls, data: Any) -> Any:
        # ``dependencies: {markdown: ">=3"}`` lists import names and keeps the
        # version spec for the installer
        if isinstance(data, dict) and isinstance(data.get("dependencies"), dict):
            specs = data["dependencies"]
            data = {
                **data,
                "dependencies": list(specs),
                "requirements": {name: str(spec) for name, spec in specs.items() if spec},
            }
        return data

    @field_validator("plugins")
    @classmethod
    def _plugins_are_callable(cls, v: list[str]) -> list[str]:
        return [check_plugin_name(name) for name in v]

    def requirement(self, name: str) -> str:
        """pip requirement for dependency ``name`` (``markdown>=3``, ``left_pad==1.2``)."""
        spec = self.requirements.get(name, "").strip()
        if not spec or spec == "*":
            return name
        if spec[0] in "<>=!~":
            return f"{name}{spec}"
        return f"{name}=={spec}"


class PackagedComponent(BaseModel):
    """What the packager writes to ``_package/package.json``."""

    name: str
    version: str
    template: str
    template_hash: str
    server: str | None = None
    server_hash: str | None = None
    dependencies: list[str] = Field(default_factory=list)
    plugins: list[str] = Field(default_factory=list)
    production: bool = False
    packaged_at: str = ""
