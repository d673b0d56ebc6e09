"""toolgate — policy gate and admission control for autonomous agent tool calls."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from toolgate.policy.engine import PolicyEngine as PolicyEngine
    from toolgate.runtime.gate import PolicyGate as PolicyGate
    from toolgate.throttle.rate_limiter import RateLimiter as RateLimiter

_LAZY_EXPORTS = {
    "PolicyEngine": "toolgate.policy.engine",
    "PolicyGate": "toolgate.runtime.gate",
    "RateLimiter": "toolgate.throttle.rate_limiter",
}


def __getattr__(name: str) -> object:
    module_path = _LAZY_EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'toolgate' has no attribute {name!r}")
