"""Shared CLI output formatters."""

from __future__ import annotations

import json
from collections.abc import Iterable

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from toolgate.policy.models import PolicyCheckResult, PolicyDecision, PolicyRule  # noqa: TC001

console = Console()

_DECISION_STYLES = {
    PolicyDecision.ALLOW: "green",
    PolicyDecision.DENY: "red",
    PolicyDecision.ASK_USER: "yellow",
}


def print_check_result(result: PolicyCheckResult, *, as_json: bool = False) -> None:
    """Print a decision and the rule that produced it."""
    rule = result.matched_rule
    if as_json:
        payload = {
            "decision": result.decision.value,
            "matched_rule": rule.to_descriptor() if rule else None,
        }
        console.print_json(json.dumps(payload))
        return

    style = _DECISION_STYLES[result.decision]
    console.print(f"Decision: [bold {style}]{result.decision.value}[/bold {style}]")
    if rule is None:
        console.print("  Matched rule: (none, default decision)")
        return

    console.print(f"  Matched rule: {escape(rule.describe())}")
    if rule.source:
        console.print(f"  Source: {escape(rule.source)}")
    if rule.name:
        console.print(f"  Name: {escape(rule.name)}")


def print_rules_table(rules: Iterable[PolicyRule]) -> None:
    """Pretty-print rules in evaluation order."""
    table = Table(title="Policy Rules (evaluation order)")
    table.add_column("Priority", justify="right", no_wrap=True)
    table.add_column("Tool", style="cyan", no_wrap=True)
    table.add_column("Arguments")
    table.add_column("Decision", no_wrap=True)
    table.add_column("Source", no_wrap=True)

    for rule in rules:
        constraints = [f"{key}~{p.pattern}" for key, p in rule.arg_patterns.items()]
        if rule.args_pattern is not None:
            constraints.append(rule.args_pattern.pattern)
        style = _DECISION_STYLES[rule.decision]
        table.add_row(
            str(rule.priority),
            escape(rule.tool_name or "*"),
            escape(_truncate(" ".join(constraints))) or "-",
            f"[{style}]{rule.decision.value}[/{style}]",
            escape(rule.source) or "-",
        )

    console.print(table)


def _truncate(text: str, max_len: int = 40) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
