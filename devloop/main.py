"""
devloop — CLI entrypoint.

Usage:
    python -m devloop.main --help
    python -m devloop.main dev components/ --port 3030
    python -m devloop.main mock plugin analytics "disabled"
"""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

import click

from devloop import __version__
from devloop.core.observability.logging_config import resolve_level, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="devloop")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to devloop.json (default: ./devloop.json).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """devloop — develop registry components locally."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get("DEVLOOP_LOG_FILE"),
        log_file_level=os.environ.get("DEVLOOP_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


@cli.command()
@click.argument("dir_name", default=".", type=click.Path(file_okay=False))
@click.option("--port", "-p", default=None, type=int, help="Port number (default: 3000).")
@click.option(
    "--retry-delay",
    default=None,
    type=float,
    help="Seconds to wait before retrying a failed packaging pass (default: 10).",
)
@click.pass_context
def dev(ctx: click.Context, dir_name: str, port: int | None, retry_delay: float | None) -> None:
    """Package components in DIR_NAME, serve them, and repackage on change.

    Examples:

        devloop dev components/

        devloop dev components/ --port 3030
    """
    from devloop.adapters.base import InstallError
    from devloop.core.config.loader import ConfigError, DevSettings
    from devloop.core.use_cases.dev import default_collaborators, run_dev
    from devloop.ui.cli.console import ConsoleReporter

    try:
        settings = DevSettings.from_env(
            Path(dir_name),
            port=port,
            retry_delay=retry_delay,
            config_path=ctx.obj.get("config_path"),
        )
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    reporter = ConsoleReporter()
    try:
        result = asyncio.run(run_dev(settings, default_collaborators(settings), reporter))
    except KeyboardInterrupt:
        click.echo()
        click.secho("Stopped.", fg="yellow")
        return
    except (ConfigError, InstallError) as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if result.error:
        sys.exit(1)


# ── Register sub-command groups from devloop/ui/cli/ ──────────────

from devloop.ui.cli.mock import mock  # noqa: E402

cli.add_command(mock)


if __name__ == "__main__":
    cli()
