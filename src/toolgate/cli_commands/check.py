"""``toolgate check`` — evaluate one tool invocation against the assembled policy."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from toolgate.cli_commands._options import build_engine, policy_options
from toolgate.cli_commands._output import print_check_result
from toolgate.errors import InvalidInvocationError


@click.command()
@click.argument("tool")
@click.option("--args", "args_json", default="{}", help="Tool arguments as a JSON object.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--trace", is_flag=True, help="Export evaluation spans to stdout.")
@policy_options
def check(
    tool: str,
    args_json: str,
    as_json: bool,
    trace: bool,
    mode: str,
    settings_paths: tuple[Path, ...],
    policy_path: Path | None,
) -> None:
    """Show the decision for calling TOOL with the given arguments.

    Example: toolgate check run_shell_command --args '{"command": "git status"}' --mode yolo
    """
    try:
        args: Any = json.loads(args_json)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"not valid JSON: {exc}", param_hint="--args") from exc

    if trace:
        from toolgate.utils.telemetry import configure_telemetry

        configure_telemetry(service_name="toolgate-cli", export_to_console=True)

    engine = build_engine(mode, settings_paths, policy_path)
    try:
        result = engine.evaluate({"name": tool, "args": args})
    except InvalidInvocationError as exc:
        raise click.ClickException(str(exc)) from exc

    print_check_result(result, as_json=as_json)
