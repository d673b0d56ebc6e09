"""toolgate CLI entrypoint."""

from __future__ import annotations

import click

from toolgate import __version__


@click.group()
@click.version_option(version=__version__, prog_name="toolgate")
def main() -> None:
    """toolgate — inspect and verify agent tool-call policy."""


# Register subcommands
from toolgate.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
