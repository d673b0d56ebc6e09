"""PolicyGate — owns the active policy engine and enforces its decisions.

Same wrapper pattern as a dispatcher guard: callers hand every proposed tool
invocation to :meth:`PolicyGate.authorize` before executing it.

The engine is replaced, never mutated.  Changing the approval mode or
reloading the persisted policy builds a complete new engine and swaps a single
(mode, engine) snapshot reference, so a concurrent caller sees either the old
pair or the new one, never a mix.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from toolgate.config import ToolGateConfig
from toolgate.errors import ApprovalDeniedError
from toolgate.policy.builder import build_policy_engine_config
from toolgate.policy.engine import PolicyEngine
from toolgate.policy.models import (
    ApprovalMode,
    PolicyCheckResult,
    PolicyDecision,
    ToolInvocation,
)
from toolgate.runtime.approver import ApprovalRequest
from toolgate.settings.models import PolicySettings
from toolgate.utils.telemetry import ATTR_APPROVAL_MODE, get_tracer

if TYPE_CHECKING:
    from toolgate.runtime.approver import Approver

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)


@dataclass(frozen=True)
class ActivePolicy:
    """An approval mode and the engine built for it."""

    approval_mode: ApprovalMode
    engine: PolicyEngine


class PolicyGate:
    """Evaluate invocations and turn DENY / refused ASK_USER into errors."""

    def __init__(
        self,
        settings: PolicySettings | Mapping[str, Any] | None,
        approval_mode: ApprovalMode | str = ApprovalMode.DEFAULT,
        *,
        config: ToolGateConfig | None = None,
        approver: Approver | None = None,
    ) -> None:
        self._settings = PolicySettings.from_settings(settings)
        self._config = config or ToolGateConfig()
        self._approver = approver
        self._active = self._activate(ApprovalMode(approval_mode))

    @property
    def active(self) -> ActivePolicy:
        """The current mode and engine, read together."""
        return self._active

    @property
    def engine(self) -> PolicyEngine:
        return self._active.engine

    @property
    def approval_mode(self) -> ApprovalMode:
        return self._active.approval_mode

    @property
    def config(self) -> ToolGateConfig:
        return self._config

    def set_approval_mode(self, approval_mode: ApprovalMode | str) -> None:
        """Rebuild the rule set for *approval_mode* and swap it in."""
        mode = ApprovalMode(approval_mode)
        self._active = self._activate(mode)
        logger.info("Approval mode set to %s", mode.value)

    def reload(self) -> None:
        """Re-read the persisted policy for the current mode."""
        self.set_approval_mode(self._active.approval_mode)

    def check(self, invocation: ToolInvocation | Mapping[str, Any]) -> PolicyCheckResult:
        """Return the decision without acting on it."""
        return self._active.engine.evaluate(invocation)

    async def authorize(self, invocation: ToolInvocation | Mapping[str, Any]) -> PolicyCheckResult:
        """Return the result if execution may proceed.

        Raises:
            ApprovalDeniedError: On a DENY decision, or when an ASK_USER
                decision is refused or there is no approver to ask.
            InvalidInvocationError: If *invocation* is malformed.
        """
        call = ToolInvocation.coerce(invocation)
        result = self._active.engine.evaluate(call)

        if result.decision == PolicyDecision.DENY:
            raise ApprovalDeniedError(call.name, reason="denied by policy")

        if result.decision == PolicyDecision.ASK_USER:
            await self._request_approval(call, result)

        return result

    async def _request_approval(self, call: ToolInvocation, result: PolicyCheckResult) -> None:
        if self._approver is None:
            logger.warning("Policy asks for approval of %s but no approver is configured", call.name)
            raise ApprovalDeniedError(call.name, reason="approval required but no approver configured")

        reason = result.matched_rule.describe() if result.matched_rule else "no matching rule"
        answer = await self._approver.request_approval(
            ApprovalRequest(tool_name=call.name, arguments=call.args, reason=reason)
        )
        if not answer.approved:
            raise ApprovalDeniedError(call.name, reason=answer.reason)

    def _activate(self, mode: ApprovalMode) -> ActivePolicy:
        with _tracer.start_as_current_span("toolgate.gate.build_engine") as span:
            span.set_attribute(ATTR_APPROVAL_MODE, mode.value)
            config = build_policy_engine_config(
                self._settings,
                mode,
                policy_path=self._config.policy_path,
                strict=self._config.strict_policy_load,
            )
            return ActivePolicy(approval_mode=mode, engine=PolicyEngine(config))
