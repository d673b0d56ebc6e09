"""Rule matching — decides whether a rule applies to an invocation.

Pure logic, no I/O, no state.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from toolgate.policy.models import canonical_args

if TYPE_CHECKING:
    from toolgate.policy.models import PolicyRule, ToolInvocation

MCP_SERVER_WILDCARD = "__*"


def tool_name_matches(rule_tool: str | None, tool_name: str) -> bool:
    """Exact match, or prefix match for ``<server>__*`` names."""
    if rule_tool is None:
        return True
    if rule_tool.endswith(MCP_SERVER_WILDCARD):
        return tool_name.startswith(rule_tool[:-1])
    return rule_tool == tool_name


def _arg_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return canonical_args(value)


def matches(rule: PolicyRule, invocation: ToolInvocation) -> bool:
    """Return True if *rule* applies to *invocation*."""
    if not tool_name_matches(rule.tool_name, invocation.name):
        return False

    if rule.arg_patterns:
        args = invocation.args
        if not isinstance(args, Mapping):
            return False
        for key, pattern in rule.arg_patterns.items():
            if key not in args or pattern.search(_arg_text(args[key])) is None:
                return False

    if rule.args_pattern is not None:
        if rule.args_pattern.search(canonical_args(invocation.args)) is None:
            return False

    return True
