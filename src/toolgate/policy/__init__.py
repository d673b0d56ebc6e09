"""Policy subsystem — rule model, matching, evaluation and rule-set assembly."""

from toolgate.policy.builder import build_policy_engine_config
from toolgate.policy.engine import PolicyEngine
from toolgate.policy.loader import load_policy_config
from toolgate.policy.matcher import matches
from toolgate.policy.models import (
    ApprovalMode,
    PolicyCheckResult,
    PolicyDecision,
    PolicyEngineConfig,
    PolicyRule,
    ToolInvocation,
    canonical_args,
)

__all__ = [
    "ApprovalMode",
    "PolicyCheckResult",
    "PolicyDecision",
    "PolicyEngine",
    "PolicyEngineConfig",
    "PolicyRule",
    "ToolInvocation",
    "build_policy_engine_config",
    "canonical_args",
    "load_policy_config",
    "matches",
]
