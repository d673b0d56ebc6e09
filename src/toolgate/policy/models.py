"""Data models for the policy engine."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from toolgate.errors import InvalidInvocationError, InvalidRulePatternError


class PolicyDecision(str, Enum):
    """Outcome of evaluating a tool invocation."""

    ALLOW = "allow"
    DENY = "deny"
    ASK_USER = "ask_user"


class ApprovalMode(str, Enum):
    """How much the agent may do without a human confirming it."""

    DEFAULT = "default"
    AUTO_EDIT = "auto_edit"
    YOLO = "yolo"

    # Alias: DEFAULT is the human-confirmation mode.
    REQUIRE_APPROVAL = "default"

    @classmethod
    def _missing_(cls, value: object) -> ApprovalMode | None:
        """Accept member names and aliases in any case, e.g. ``require_approval``."""
        if isinstance(value, str):
            member = cls.__members__.get(value.strip().upper())
            if member is not None:
                return member
            for mode in cls:
                if mode.value == value.strip().lower():
                    return mode
        return None

    @classmethod
    def choices(cls) -> list[str]:
        """Values plus lowercase alias names, for CLI option choices."""
        names = [mode.value for mode in cls]
        names.extend(name.lower() for name in cls.__members__ if name.lower() not in names)
        return names


def canonical_args(args: Any) -> str:
    """Serialize invocation arguments with fixed key order and no whitespace."""
    return json.dumps(
        args, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=_json_default
    )


def _json_default(value: Any) -> Any:
    # Sets become lists in canonical element order, not hash order.
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=canonical_args)
    return str(value)


def _compile(value: Any) -> re.Pattern[str]:
    if isinstance(value, re.Pattern):
        return value
    if not isinstance(value, str):
        raise InvalidRulePatternError(repr(value), "pattern must be a string")
    try:
        return re.compile(value)
    except re.error as exc:
        raise InvalidRulePatternError(value, str(exc)) from exc


class PolicyRule(BaseModel):
    """A single authorization clause.

    Pattern strings are compiled when the rule is built, so a bad regex is a
    configuration error (:class:`InvalidRulePatternError`) rather than
    something discovered while evaluating a live invocation.
    """

    model_config = ConfigDict(frozen=True)

    tool_name: str | None = Field(
        default=None,
        description="Exact tool name, or '<server>__*' for every tool of an MCP server.",
    )
    args_pattern: re.Pattern[str] | None = Field(
        default=None,
        description="Searched against the canonical JSON serialization of the args.",
    )
    arg_patterns: dict[str, re.Pattern[str]] = Field(
        default_factory=dict,
        description="Per-argument patterns; every named argument must match.",
    )
    decision: PolicyDecision
    priority: int = Field(default=0, description="Higher wins among matching rules.")
    source: str = Field(default="", description="Where the rule came from (audit only).")
    name: str | None = Field(default=None, description="Human-readable label (audit only).")

    @field_validator("args_pattern", mode="before")
    @classmethod
    def _compile_args_pattern(cls, value: Any) -> Any:
        if value is None:
            return None
        return _compile(value)

    @field_validator("arg_patterns", mode="before")
    @classmethod
    def _compile_arg_patterns(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            msg = "arg_patterns must be a mapping of argument name to pattern"
            raise ValueError(msg)
        return {str(key): _compile(pattern) for key, pattern in value.items()}

    @property
    def is_wildcard(self) -> bool:
        """True when the rule constrains neither tool nor arguments."""
        return self.tool_name is None and self.args_pattern is None and not self.arg_patterns

    def describe(self) -> str:
        parts = [self.tool_name or "*"]
        for key, pattern in self.arg_patterns.items():
            parts.append(f"{key}~{pattern.pattern}")
        if self.args_pattern is not None:
            parts.append(f"args~{self.args_pattern.pattern}")
        return " ".join(parts) + f" -> {self.decision.value} @{self.priority}"

    def to_descriptor(self) -> dict[str, Any]:
        """Plain-data view, in the field names the policy document uses."""
        data: dict[str, Any] = {
            "tool": self.tool_name,
            "decision": self.decision.value,
            "priority": self.priority,
            "source": self.source,
        }
        if self.args_pattern is not None:
            data["args_pattern"] = self.args_pattern.pattern
        if self.arg_patterns:
            data["args"] = {key: p.pattern for key, p in self.arg_patterns.items()}
        if self.name:
            data["name"] = self.name
        return data


class ToolInvocation(BaseModel):
    """A proposed tool call awaiting a decision."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, strict=True)
    args: Any = Field(default_factory=dict)

    @classmethod
    def coerce(cls, value: ToolInvocation | Mapping[str, Any]) -> ToolInvocation:
        """Accept an invocation or a ``{"name": ..., "args": ...}`` mapping.

        Raises:
            InvalidInvocationError: If *value* does not have a usable name.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, Mapping):
            raise InvalidInvocationError(f"expected a mapping, got {type(value).__name__}")
        try:
            return cls.model_validate(dict(value))
        except ValidationError as exc:
            raise InvalidInvocationError(str(exc)) from exc


class PolicyCheckResult(BaseModel):
    """The engine's decision plus the rule that produced it, if any."""

    model_config = ConfigDict(frozen=True)

    decision: PolicyDecision
    matched_rule: PolicyRule | None = None


class PolicyEngineConfig(BaseModel):
    """An immutable rule set plus the decision used when nothing matches."""

    model_config = ConfigDict(frozen=True)

    rules: tuple[PolicyRule, ...] = ()
    default_decision: PolicyDecision = PolicyDecision.ASK_USER

    @field_validator("default_decision")
    @classmethod
    def _never_default_allow(cls, value: PolicyDecision) -> PolicyDecision:
        if value == PolicyDecision.ALLOW:
            msg = "default_decision must be ask_user or deny"
            raise ValueError(msg)
        return value

    def with_rules(self, rules: Iterable[PolicyRule]) -> PolicyEngineConfig:
        """Return a new config with *rules* appended after the existing ones."""
        return self.model_copy(update={"rules": (*self.rules, *rules)})
