"""Assemble a :class:`PolicyEngineConfig` from settings, approval mode and
the persisted policy document.

Priority bands:

- ``0-999``: rules derived from settings and the approval mode.
- persisted rules, at exactly the priority their author assigned.
- YOLO only: the fixed override set, at ``OVERRIDE_PRIORITY`` or one above the
  highest persisted priority, whichever is greater, so no persisted rule can
  shadow it.  Persisted priorities are never rewritten.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from pathlib import Path

from toolgate.config import default_policy_path
from toolgate.policy.loader import load_policy_config
from toolgate.policy.models import (
    ApprovalMode,
    PolicyDecision,
    PolicyEngineConfig,
    PolicyRule,
)
from toolgate.settings.models import PolicySettings

logger = logging.getLogger(__name__)

SHELL_TOOL = "run_shell_command"
READ_ONLY_TOOLS = (
    "glob",
    "search_file_content",
    "list_directory",
    "read_file",
    "read_many_files",
)
EDIT_TOOLS = ("replace", "write_file")
YOLO_DENIED_TOOLS = ("write_file", "replace", "write_todos")
SAFE_YOLO_COMMANDS = (
    "git",
    "ls",
    "grep",
    "rg",
    "cat",
    "find",
    "pwd",
    "whoami",
    "head",
    "tail",
    "wc",
    "diff",
    "du",
    "df",
    "stat",
    "ps",
    "date",
)

# Matches the canonical args string of a shell call such as
# {"command":"git status"}.  After the verb the command may not contain shell
# control characters or JSON escapes other than \" \\ \/.
SAFE_YOLO_PATTERN = (
    r'^\{"command":"(?:' + "|".join(SAFE_YOLO_COMMANDS) + r')(?=[ "])'
    r'(?:[^"\\;&|`$<>]|\\["\\/])*"'
)

EXCLUDE_PRIORITY = 200
MCP_EXCLUDED_PRIORITY = 195
ALLOWED_PRIORITY = 100
MCP_TRUSTED_PRIORITY = 90
MCP_ALLOWED_PRIORITY = 85
READ_ONLY_PRIORITY = 50
AUTO_EDIT_PRIORITY = 15
YOLO_DEFAULT_PRIORITY = 0

OVERRIDE_PRIORITY = 2000

_SCOPED_TOOL = re.compile(r"^(?P<tool>[^()\s]+)\((?P<arg>.*)\)$")


def build_policy_engine_config(
    settings: PolicySettings | dict[str, object] | None,
    approval_mode: ApprovalMode | str,
    *,
    policy_path: str | Path | None = None,
    strict: bool = False,
) -> PolicyEngineConfig:
    """Build the ordered rule set for one approval mode.

    Order: settings-derived rules, then persisted rules, then (YOLO only) the
    override set.  A corrupt policy file contributes no rules unless *strict*
    is set, in which case :class:`~toolgate.errors.PolicyLoadError` propagates.
    """
    policy_settings = PolicySettings.from_settings(settings)
    mode = ApprovalMode(approval_mode)

    rules = baseline_rules(policy_settings, mode)
    baseline_count = len(rules)

    path = Path(policy_path) if policy_path is not None else default_policy_path()
    persisted = load_policy_config(path, strict=strict)
    rules.extend(persisted.rules)

    if mode is ApprovalMode.YOLO:
        rules.extend(yolo_override_rules(override_base(persisted.rules)))

    logger.debug(
        "Built policy config for mode %s: %d settings rules, %d persisted rules, %d total",
        mode.value,
        baseline_count,
        len(persisted.rules),
        len(rules),
    )
    return PolicyEngineConfig(rules=tuple(rules))


def baseline_rules(settings: PolicySettings, mode: ApprovalMode) -> list[PolicyRule]:
    """Rules derived purely from settings and the approval mode."""
    rules: list[PolicyRule] = []

    for server_name, server in settings.mcp_servers.items():
        if server.trust:
            rules.append(
                _server_rule(server_name, PolicyDecision.ALLOW, MCP_TRUSTED_PRIORITY, "trusted")
            )

    for server_name in settings.mcp.allowed:
        rules.append(_server_rule(server_name, PolicyDecision.ALLOW, MCP_ALLOWED_PRIORITY, "allowed"))

    for server_name in settings.mcp.excluded:
        rules.append(_server_rule(server_name, PolicyDecision.DENY, MCP_EXCLUDED_PRIORITY, "excluded"))

    for entry in settings.tools.exclude:
        rules.append(_tool_entry_rule(entry, PolicyDecision.DENY, EXCLUDE_PRIORITY))

    for entry in settings.tools.allowed:
        rules.append(_tool_entry_rule(entry, PolicyDecision.ALLOW, ALLOWED_PRIORITY))

    for tool_name in READ_ONLY_TOOLS:
        rules.append(
            PolicyRule(
                tool_name=tool_name,
                decision=PolicyDecision.ALLOW,
                priority=READ_ONLY_PRIORITY,
                source="settings",
                name="read-only tool",
            )
        )

    if mode is ApprovalMode.AUTO_EDIT:
        for tool_name in EDIT_TOOLS:
            rules.append(
                PolicyRule(
                    tool_name=tool_name,
                    decision=PolicyDecision.ALLOW,
                    priority=AUTO_EDIT_PRIORITY,
                    source="approval-mode",
                    name="auto-edit",
                )
            )
    elif mode is ApprovalMode.YOLO:
        rules.append(
            PolicyRule(
                decision=PolicyDecision.ALLOW,
                priority=YOLO_DEFAULT_PRIORITY,
                source="approval-mode",
                name="yolo-default-allow",
            )
        )

    return rules


def override_base(persisted: Iterable[PolicyRule]) -> int:
    """Lowest priority at which the override set outranks every persisted rule."""
    highest = max((rule.priority for rule in persisted), default=OVERRIDE_PRIORITY - 1)
    return max(OVERRIDE_PRIORITY, highest + 1)


def yolo_override_rules(base: int = OVERRIDE_PRIORITY) -> list[PolicyRule]:
    """The fixed rule set that keeps YOLO mode read-only.

    Denies sit at *base*; the read-only shell exception sits one above.
    """
    rules = [
        PolicyRule(
            tool_name=tool_name,
            decision=PolicyDecision.DENY,
            priority=base,
            source="yolo-override",
            name="yolo-deny-mutation",
        )
        for tool_name in YOLO_DENIED_TOOLS
    ]
    rules.append(
        PolicyRule(
            tool_name=SHELL_TOOL,
            args_pattern=SAFE_YOLO_PATTERN,
            decision=PolicyDecision.ALLOW,
            priority=base + 1,
            source="yolo-override",
            name="yolo-allow-read-only-shell",
        )
    )
    rules.append(
        PolicyRule(
            tool_name=SHELL_TOOL,
            decision=PolicyDecision.DENY,
            priority=base,
            source="yolo-override",
            name="yolo-deny-shell",
        )
    )
    return rules


def _server_rule(server_name: str, decision: PolicyDecision, priority: int, label: str) -> PolicyRule:
    return PolicyRule(
        tool_name=f"{server_name}__*",
        decision=decision,
        priority=priority,
        source="settings",
        name=f"mcp server {label}",
    )


def _tool_entry_rule(entry: str, decision: PolicyDecision, priority: int) -> PolicyRule:
    """Rule for a ``tools.allowed``/``tools.exclude`` entry.

    ``tool(prefix)`` scopes the rule to commands starting with *prefix*.  An
    allow entry only covers the command when nothing after the prefix could
    chain another command; an exclude entry covers any continuation.
    """
    match = _SCOPED_TOOL.match(entry.strip())
    if match is None or not match.group("arg").strip():
        tool_name = match.group("tool") if match else entry.strip()
        return PolicyRule(tool_name=tool_name, decision=decision, priority=priority, source="settings")

    prefix = re.escape(match.group("arg").strip())
    if decision is PolicyDecision.ALLOW:
        pattern = rf"^{prefix}(?:\s[^;&|`$<>\r\n]*)?$"
    else:
        pattern = rf"^{prefix}(?:\s|$)"
    return PolicyRule(
        tool_name=match.group("tool"),
        arg_patterns={"command": pattern},
        decision=decision,
        priority=priority,
        source="settings",
        name=entry.strip(),
    )

