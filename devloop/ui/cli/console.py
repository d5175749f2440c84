"""
Console reporter — click-coloured rendering of the dev loop narrative.
"""

from __future__ import annotations

import click

from devloop.core.observability.reporter import TREE_BRANCH, Reporter


class ConsoleReporter(Reporter):
    """Writes the narrative to the terminal.

    ``step`` leaves the line open so the following ``ok`` lands on the
    same line (``Packaging components...OK``).  Anything else printed
    while a step is open closes the line first.
    """

    def __init__(self) -> None:
        self._open_line = False

    def step(self, message: str) -> None:
        self._close_line()
        click.secho(message, fg="yellow", nl=False)
        self._open_line = True

    def ok(self, message: str = "OK") -> None:
        click.secho(message, fg="green")
        self._open_line = False

    def item(self, text: str) -> None:
        self._close_line()
        click.secho(TREE_BRANCH, fg="green", nl=False)
        click.echo(text)

    def warn(self, message: str) -> None:
        self._close_line()
        click.secho(message, fg="yellow")

    def error(self, message: str) -> None:
        self._close_line()
        click.secho(message, fg="red")

    def hint(self, message: str, command: str | None = None) -> None:
        self._close_line()
        click.secho(message, fg="red", nl=command is None)
        if command:
            click.secho(command, fg="blue")

    def _close_line(self) -> None:
        if self._open_line:
            click.echo()
            self._open_line = False
