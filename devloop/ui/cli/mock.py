"""
CLI commands for plugin mocks.

Thin wrappers over ``devloop.core.config.loader``.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click


def _resolve_config_path(ctx: click.Context) -> Path:
    """devloop.json from --config, or the working directory."""
    from devloop.core.config.loader import LOCAL_CONFIG_FILE

    config_path: Path | None = ctx.obj.get("config_path") if ctx.obj else None
    return config_path or Path.cwd() / LOCAL_CONFIG_FILE


def _parse_value(raw: str) -> object:
    """JSON when it parses (numbers, booleans, objects), else the raw string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


@click.group()
def mock() -> None:
    """Mocks — stand-ins for registry features in dev mode."""


@mock.command("plugin")
@click.argument("name")
@click.argument("value")
@click.pass_context
def mock_plugin(ctx: click.Context, name: str, value: str) -> None:
    """Mock plugin NAME so it always returns VALUE.

    Examples:

        devloop mock plugin analytics "disabled"

        devloop mock plugin maxItems 10
    """
    from devloop.core.config.loader import ConfigError, add_static_mock

    path = _resolve_config_path(ctx)
    parsed = _parse_value(value)

    try:
        add_static_mock(path, name, parsed)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    click.secho(f"✅ Mocked plugin {name} () => {parsed!r}", fg="green")
    click.echo(f"   Saved to {path}")
