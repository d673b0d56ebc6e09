"""Gate configuration — policy location, load strictness, rate limits."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

POLICY_FILENAME = "policy.yaml"


def default_home() -> Path:
    """``$TOOLGATE_HOME`` if set, else ``~/.toolgate``."""
    env = os.environ.get("TOOLGATE_HOME")
    if env:
        return Path(env).expanduser()
    return Path.home() / ".toolgate"


def default_policy_path() -> Path:
    return default_home() / POLICY_FILENAME


class RateLimitConfig(BaseModel):
    """Throughput budget for one rate-limited backend."""

    tokens_per_second: float = Field(default=630.0, gt=0)
    window_seconds: float = Field(default=10.0, gt=0)


class ToolGateConfig(BaseModel):
    """Top-level configuration for the policy gate."""

    policy_path: Path = Field(
        default_factory=default_policy_path,
        description="Per-user persisted policy document.",
    )
    strict_policy_load: bool = Field(
        default=False,
        description="Raise instead of falling back to no persisted rules when the policy file is corrupt.",
    )
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
