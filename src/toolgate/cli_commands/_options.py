"""Shared CLI options and policy assembly for subcommands."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

import click
import yaml

from toolgate.errors import ToolGateError
from toolgate.policy.builder import build_policy_engine_config
from toolgate.policy.engine import PolicyEngine
from toolgate.policy.models import ApprovalMode
from toolgate.settings.models import PolicySettings, merge_settings

F = TypeVar("F", bound=Callable[..., Any])


def policy_options(func: F) -> F:
    """Attach ``--mode``, ``--settings`` and ``--policy`` to a command."""
    func = click.option(
        "--policy",
        "policy_path",
        type=click.Path(dir_okay=False, path_type=Path),
        default=None,
        help="Policy document (defaults to the per-user policy file).",
    )(func)
    func = click.option(
        "--settings",
        "settings_paths",
        multiple=True,
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="Settings file to merge; repeat in precedence order, lowest first.",
    )(func)
    func = click.option(
        "--mode",
        type=click.Choice(ApprovalMode.choices(), case_sensitive=False),
        default=ApprovalMode.DEFAULT.value,
        show_default=True,
        help="Approval mode to build the rule set for.",
    )(func)
    return func


def load_settings_files(paths: tuple[Path, ...]) -> PolicySettings:
    """Read each YAML/JSON settings file and merge them in order."""
    layers: list[dict[str, Any]] = []
    for path in paths:
        try:
            data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise click.ClickException(f"Cannot read settings {path}: {exc}") from exc
        if data is None:
            continue
        if not isinstance(data, dict):
            raise click.ClickException(f"Settings file {path} must contain a mapping")
        layers.append(data)

    try:
        return merge_settings(*layers)
    except ToolGateError as exc:
        raise click.ClickException(str(exc)) from exc


def build_engine(mode: str, settings_paths: tuple[Path, ...], policy_path: Path | None) -> PolicyEngine:
    settings = load_settings_files(settings_paths)
    try:
        config = build_policy_engine_config(settings, mode, policy_path=policy_path)
    except ToolGateError as exc:
        raise click.ClickException(str(exc)) from exc
    return PolicyEngine(config)
