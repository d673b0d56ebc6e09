"""PolicyEngine — evaluates tool invocations against a prioritized rule set.

Pure logic, no I/O.  Rules are ordered once, at construction, by descending
priority using a stable sort; evaluation returns the first rule that matches.
The selected rule is therefore always the matching rule with the highest
priority, and among equal priorities the rule that appears first in the
config wins.  When nothing matches the config's ``default_decision``
(``ASK_USER`` unless configured to ``DENY``) is returned.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from toolgate.policy.matcher import matches
from toolgate.policy.models import (
    PolicyCheckResult,
    PolicyEngineConfig,
    PolicyRule,
    ToolInvocation,
)
from toolgate.utils.telemetry import (
    ATTR_DECISION,
    ATTR_PRIORITY,
    ATTR_RULE_SOURCE,
    ATTR_TOOL_NAME,
    get_tracer,
)

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)


class PolicyEngine:
    """Evaluate invocations against a :class:`PolicyEngineConfig`.

    The engine never mutates its config, so one instance can be shared by
    concurrent callers.  To change the rules build a new engine.
    """

    def __init__(self, config: PolicyEngineConfig) -> None:
        self._config = config
        self._rules: tuple[PolicyRule, ...] = tuple(
            sorted(config.rules, key=lambda rule: rule.priority, reverse=True)
        )

    @property
    def config(self) -> PolicyEngineConfig:
        return self._config

    @property
    def rules(self) -> tuple[PolicyRule, ...]:
        """Rules in evaluation order."""
        return self._rules

    def evaluate(self, invocation: ToolInvocation | Mapping[str, Any]) -> PolicyCheckResult:
        """Return the decision for *invocation*.

        Raises:
            InvalidInvocationError: If *invocation* has no usable tool name.
        """
        call = ToolInvocation.coerce(invocation)

        with _tracer.start_as_current_span("toolgate.policy.evaluate") as span:
            span.set_attribute(ATTR_TOOL_NAME, call.name)
            result = self._evaluate(call)
            span.set_attribute(ATTR_DECISION, result.decision.value)
            if result.matched_rule is not None:
                span.set_attribute(ATTR_PRIORITY, result.matched_rule.priority)
                span.set_attribute(ATTR_RULE_SOURCE, result.matched_rule.source)

        logger.debug(
            "Policy decision for %s: %s (rule: %s)",
            call.name,
            result.decision.value,
            result.matched_rule.describe() if result.matched_rule else "none",
        )
        return result

    def _evaluate(self, call: ToolInvocation) -> PolicyCheckResult:
        for rule in self._rules:
            if matches(rule, call):
                return PolicyCheckResult(decision=rule.decision, matched_rule=rule)
        return PolicyCheckResult(decision=self._config.default_decision)
