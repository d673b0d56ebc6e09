"""Settings merging and the settings view consumed by the policy builder."""

from toolgate.settings.merge import MergeStrategy, merge, merge_layers
from toolgate.settings.models import (
    MCPServerSettings,
    MCPSettings,
    PolicySettings,
    ToolsSettings,
    merge_settings,
    settings_strategy,
)

__all__ = [
    "MCPServerSettings",
    "MCPSettings",
    "MergeStrategy",
    "PolicySettings",
    "ToolsSettings",
    "merge",
    "merge_layers",
    "merge_settings",
    "settings_strategy",
]
