"""Typed view of the settings sub-trees that shape policy rules.

Only ``mcp``, ``tools`` and ``mcpServers`` matter to the policy builder; any
other top-level settings are ignored here.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from toolgate.errors import InvalidSettingsError
from toolgate.settings.merge import MergeStrategy, merge_layers

SETTINGS_MERGE_STRATEGIES: dict[tuple[str, ...], MergeStrategy] = {
    ("security",): MergeStrategy.ENFORCE,
    ("tools", "exclude"): MergeStrategy.UNION,
    ("mcp", "excluded"): MergeStrategy.UNION,
    ("mcpServers",): MergeStrategy.SHALLOW_MERGE,
}


def settings_strategy(path: tuple[str, ...]) -> MergeStrategy | None:
    """Strategy resolver for the settings tree."""
    return SETTINGS_MERGE_STRATEGIES.get(path)


class MCPServerSettings(BaseModel):
    """One configured MCP server; only ``trust`` affects policy."""

    model_config = ConfigDict(extra="allow")

    trust: bool = False


class MCPSettings(BaseModel):
    """General MCP settings."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    allowed: list[str] = Field(default_factory=list, description="Servers whose tools are allowed.")
    excluded: list[str] = Field(default_factory=list, description="Servers whose tools are denied.")
    server_command: str | None = Field(default=None, alias="serverCommand")


class ToolsSettings(BaseModel):
    """Per-tool allow and exclude lists.

    Entries are tool names, or ``tool(command prefix)`` to scope a shell tool
    to one command, e.g. ``run_shell_command(git status)``.
    """

    model_config = ConfigDict(extra="allow")

    allowed: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)
    core: list[str] | None = None


class PolicySettings(BaseModel):
    """The already-merged settings value consumed by the policy builder."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    mcp: MCPSettings = Field(default_factory=MCPSettings)
    tools: ToolsSettings = Field(default_factory=ToolsSettings)
    mcp_servers: dict[str, MCPServerSettings] = Field(default_factory=dict, alias="mcpServers")

    @classmethod
    def from_settings(cls, settings: PolicySettings | Mapping[str, Any] | None) -> PolicySettings:
        """Validate a plain settings mapping.

        Raises:
            InvalidSettingsError: If a policy-relevant sub-tree has the wrong shape.
        """
        if settings is None:
            return cls()
        if isinstance(settings, cls):
            return settings
        if not isinstance(settings, Mapping):
            raise InvalidSettingsError(f"settings must be a mapping, got {type(settings).__name__}")
        data = {key: value for key, value in settings.items() if value is not None}
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise InvalidSettingsError(str(exc)) from exc


def merge_settings(*layers: Mapping[str, Any]) -> PolicySettings:
    """Fold settings layers (lowest precedence first) and validate the result."""
    return PolicySettings.from_settings(merge_layers(settings_strategy, *layers))
