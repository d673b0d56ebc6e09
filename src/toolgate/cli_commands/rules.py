"""``toolgate rules`` — list the assembled rule set."""

from __future__ import annotations

import json
from pathlib import Path

import click

from toolgate.cli_commands._options import build_engine, policy_options
from toolgate.cli_commands._output import console, print_rules_table


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@policy_options
def rules(
    as_json: bool,
    mode: str,
    settings_paths: tuple[Path, ...],
    policy_path: Path | None,
) -> None:
    """List every rule in evaluation order (highest priority first)."""
    engine = build_engine(mode, settings_paths, policy_path)

    if as_json:
        console.print_json(json.dumps([rule.to_descriptor() for rule in engine.rules]))
        return

    print_rules_table(engine.rules)
