"""CLI subcommand registration."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all subcommands on the CLI group."""
    from toolgate.cli_commands.check import check
    from toolgate.cli_commands.rules import rules

    cli.add_command(check)
    cli.add_command(rules)
