"""Persisted policy loading.

The per-user policy document is YAML (JSON is accepted too)::

    rules:
      - tool: write_file
        args_pattern: '"file_path":"/tmp/'
        decision: allow
        priority: 500
      - tool: run_shell_command
        args:
          command: '^rm\\s'
        decision: deny
        priority: 900

A missing file means "no persisted rules".  A document that cannot be read
or parsed as a whole degrades to an empty rule set with a warning, unless the
caller asks for strict loading.  A single bad entry is dropped and the rest of
the document still loads.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from toolgate.errors import InvalidRulePatternError, PolicyLoadError
from toolgate.policy.models import PolicyDecision, PolicyEngineConfig, PolicyRule

logger = logging.getLogger(__name__)

PERSISTED_SOURCE = "persisted"


def load_policy_config(path: str | Path, *, strict: bool = False) -> PolicyEngineConfig:
    """Load persisted rules from *path*.

    Never raises unless *strict* is set, in which case an unreadable or
    malformed document raises :class:`PolicyLoadError`.  A missing file is
    never an error.
    """
    policy_path = Path(path).expanduser()

    try:
        document = _read_document(policy_path)
    except FileNotFoundError:
        logger.debug("No policy file at %s", policy_path)
        return PolicyEngineConfig()
    except PolicyLoadError as exc:
        if strict:
            raise
        logger.warning("%s; continuing without persisted rules", exc)
        return PolicyEngineConfig()

    try:
        entries = _rule_entries(policy_path, document)
    except PolicyLoadError as exc:
        if strict:
            raise
        logger.warning("%s; continuing without persisted rules", exc)
        return PolicyEngineConfig()

    rules: list[PolicyRule] = []
    for index, entry in enumerate(entries):
        rule = parse_rule_descriptor(entry, index=index, origin=str(policy_path))
        if rule is not None:
            rules.append(rule)

    logger.debug("Loaded %d rules from %s", len(rules), policy_path)
    return PolicyEngineConfig(rules=tuple(rules))


def _read_document(path: Path) -> Any:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except (OSError, UnicodeDecodeError) as exc:
        raise PolicyLoadError(path, str(exc)) from exc

    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise PolicyLoadError(path, f"YAML parse error: {exc}") from exc


def _rule_entries(path: Path, document: Any) -> list[Any]:
    if document is None:
        return []
    if not isinstance(document, Mapping):
        raise PolicyLoadError(path, "policy document must be a mapping")
    entries = document.get("rules")
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise PolicyLoadError(path, "'rules' must be a list")
    return entries


def parse_decision(value: Any) -> PolicyDecision:
    """``allow``/``deny`` in any case; anything else asks the user."""
    if isinstance(value, str):
        upper = value.upper()
        if upper == "ALLOW":
            return PolicyDecision.ALLOW
        if upper == "DENY":
            return PolicyDecision.DENY
    return PolicyDecision.ASK_USER


def parse_rule_descriptor(entry: Any, *, index: int = 0, origin: str = "") -> PolicyRule | None:
    """Turn one rule descriptor into a :class:`PolicyRule`.

    Returns ``None`` (after logging a warning) when the entry cannot be used.
    """
    where = f"{origin} rule #{index}" if origin else f"rule #{index}"

    if not isinstance(entry, Mapping):
        logger.warning("Skipping %s: expected a mapping, got %s", where, type(entry).__name__)
        return None

    tool = entry.get("tool")
    if tool is not None and (not isinstance(tool, str) or not tool):
        logger.warning("Skipping %s: 'tool' must be a non-empty string", where)
        return None

    priority = entry.get("priority", 0)
    if priority is None:
        priority = 0
    if isinstance(priority, bool) or not isinstance(priority, int):
        logger.warning("Skipping %s: 'priority' must be an integer, got %r", where, priority)
        return None

    args_pattern = entry.get("args_pattern") or None
    if args_pattern is not None and not isinstance(args_pattern, str):
        logger.warning("Skipping %s: 'args_pattern' must be a string", where)
        return None

    arg_patterns = entry.get("args") or {}
    if not isinstance(arg_patterns, Mapping) or not all(
        isinstance(key, str) and isinstance(value, str) for key, value in arg_patterns.items()
    ):
        logger.warning("Skipping %s: 'args' must map argument names to patterns", where)
        return None

    name = entry.get("name")
    try:
        rule = PolicyRule(
            tool_name=tool,
            args_pattern=args_pattern,
            arg_patterns=arg_patterns,
            decision=parse_decision(entry.get("decision")),
            priority=priority,
            source=PERSISTED_SOURCE,
            name=name if isinstance(name, str) else None,
        )
    except InvalidRulePatternError as exc:
        logger.warning("Skipping %s: %s", where, exc)
        return None

    if rule.is_wildcard:
        logger.warning("%s matches every invocation (%s)", where, rule.describe())
    return rule
