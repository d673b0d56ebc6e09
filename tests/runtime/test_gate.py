"""Tests for PolicyGate."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

import pytest

from toolgate.config import ToolGateConfig
from toolgate.errors import ApprovalDeniedError, InvalidInvocationError, PolicyLoadError
from toolgate.policy.models import ApprovalMode, PolicyDecision
from toolgate.runtime.approver import ApprovalRequest, ApprovalResult, AutoApprover
from toolgate.runtime.gate import ActivePolicy, PolicyGate
from toolgate.utils.telemetry import ATTR_APPROVAL_MODE

if TYPE_CHECKING:
    from pathlib import Path


class RecordingApprover:
    def __init__(self, *, approve: bool, reason: str = "") -> None:
        self.approve = approve
        self.reason = reason
        self.requests: list[ApprovalRequest] = []

    async def request_approval(self, request: ApprovalRequest) -> ApprovalResult:
        self.requests.append(request)
        return ApprovalResult(approved=self.approve, reason=self.reason)


def _config(tmp_path: Path, body: str | None = None, *, strict: bool = False) -> ToolGateConfig:
    path = tmp_path / "policy.yaml"
    if body is not None:
        path.write_text(body)
    return ToolGateConfig(policy_path=path, strict_policy_load=strict)


_DENY_SHELL_RM = """\
rules:
  - tool: run_shell_command
    args:
      command: "^rm "
    decision: deny
    priority: 500
"""


class TestCheck:
    def test_read_only_allowed(self, tmp_path: Path) -> None:
        gate = PolicyGate(None, config=_config(tmp_path))
        result = gate.check({"name": "read_file", "args": {"path": "a"}})
        assert result.decision == PolicyDecision.ALLOW

    def test_unmatched_asks(self, tmp_path: Path) -> None:
        gate = PolicyGate({}, config=_config(tmp_path))
        result = gate.check({"name": "run_shell_command", "args": {"command": "make"}})
        assert result.decision == PolicyDecision.ASK_USER
        assert result.matched_rule is None

    def test_settings_exclude(self, tmp_path: Path) -> None:
        gate = PolicyGate({"tools": {"exclude": ["web_fetch"]}}, config=_config(tmp_path))
        assert gate.check({"name": "web_fetch"}).decision == PolicyDecision.DENY

    def test_persisted_rule_applies(self, tmp_path: Path) -> None:
        gate = PolicyGate(None, config=_config(tmp_path, _DENY_SHELL_RM))
        result = gate.check({"name": "run_shell_command", "args": {"command": "rm -rf /"}})
        assert result.decision == PolicyDecision.DENY
        assert result.matched_rule is not None
        assert result.matched_rule.source == "persisted"

    def test_default_config_uses_home(self, isolated_home: Path) -> None:
        isolated_home.mkdir()
        (isolated_home / "policy.yaml").write_text(_DENY_SHELL_RM)
        gate = PolicyGate(None)
        assert gate.config.policy_path == isolated_home / "policy.yaml"
        result = gate.check({"name": "run_shell_command", "args": {"command": "rm x"}})
        assert result.decision == PolicyDecision.DENY

    def test_strict_load_raises(self, tmp_path: Path) -> None:
        with pytest.raises(PolicyLoadError):
            PolicyGate(None, config=_config(tmp_path, "rules: [", strict=True))

    def test_lenient_load_falls_back(self, tmp_path: Path) -> None:
        gate = PolicyGate(None, config=_config(tmp_path, "rules: ["))
        assert all(rule.source != "persisted" for rule in gate.engine.rules)


class TestApprovalMode:
    def test_defaults_to_default_mode(self, tmp_path: Path) -> None:
        gate = PolicyGate(None, config=_config(tmp_path))
        assert gate.approval_mode is ApprovalMode.DEFAULT

    def test_accepts_string_mode(self, tmp_path: Path) -> None:
        gate = PolicyGate(None, "auto_edit", config=_config(tmp_path))
        assert gate.approval_mode is ApprovalMode.AUTO_EDIT
        assert gate.check({"name": "write_file"}).decision == PolicyDecision.ALLOW

    def test_switch_replaces_engine(self, tmp_path: Path) -> None:
        gate = PolicyGate(None, config=_config(tmp_path))
        before = gate.engine
        before_rules = before.rules

        gate.set_approval_mode(ApprovalMode.YOLO)

        assert gate.engine is not before
        assert before.rules == before_rules
        assert gate.approval_mode is ApprovalMode.YOLO
        assert gate.check({"name": "web_fetch"}).decision == PolicyDecision.ALLOW
        assert gate.check({"name": "write_file"}).decision == PolicyDecision.DENY

    def test_yolo_shell(self, tmp_path: Path) -> None:
        gate = PolicyGate(None, ApprovalMode.YOLO, config=_config(tmp_path))
        safe = gate.check({"name": "run_shell_command", "args": {"command": "git status"}})
        unsafe = gate.check({"name": "run_shell_command", "args": {"command": "rm -rf /"}})
        assert safe.decision == PolicyDecision.ALLOW
        assert unsafe.decision == PolicyDecision.DENY

    def test_invalid_mode(self, tmp_path: Path) -> None:
        gate = PolicyGate(None, config=_config(tmp_path))
        with pytest.raises(ValueError):
            gate.set_approval_mode("reckless")
        assert gate.approval_mode is ApprovalMode.DEFAULT

    def test_reload_picks_up_new_rules(self, tmp_path: Path) -> None:
        config = _config(tmp_path)
        gate = PolicyGate(None, config=config)
        call = {"name": "run_shell_command", "args": {"command": "rm x"}}
        assert gate.check(call).decision == PolicyDecision.ASK_USER

        config.policy_path.write_text(_DENY_SHELL_RM)
        gate.reload()

        assert gate.check(call).decision == PolicyDecision.DENY


    def test_snapshot_pairs_mode_with_engine(self, tmp_path: Path) -> None:
        gate = PolicyGate(None, config=_config(tmp_path))
        before = gate.active

        gate.set_approval_mode("yolo")
        after = gate.active

        assert isinstance(after, ActivePolicy)
        assert after is not before
        assert (before.approval_mode, after.approval_mode) == (ApprovalMode.DEFAULT, ApprovalMode.YOLO)
        assert before.engine.evaluate({"name": "web_fetch"}).decision == PolicyDecision.ASK_USER
        assert after.engine.evaluate({"name": "web_fetch"}).decision == PolicyDecision.ALLOW
        assert gate.engine is after.engine

    def test_failed_switch_keeps_snapshot(self, tmp_path: Path) -> None:
        config = _config(tmp_path, strict=True)
        gate = PolicyGate(None, config=config)
        before = gate.active

        config.policy_path.write_text("rules: [")
        with pytest.raises(PolicyLoadError):
            gate.set_approval_mode(ApprovalMode.YOLO)

        assert gate.active is before
        assert gate.approval_mode is ApprovalMode.DEFAULT

    def test_build_span_records_mode(self, tmp_path: Path) -> None:
        tracer = MagicMock()
        span = tracer.start_as_current_span.return_value.__enter__.return_value
        with patch("toolgate.runtime.gate._tracer", tracer):
            gate = PolicyGate(None, config=_config(tmp_path))
            gate.set_approval_mode("auto_edit")

        tracer.start_as_current_span.assert_called_with("toolgate.gate.build_engine")
        span.set_attribute.assert_any_call(ATTR_APPROVAL_MODE, "default")
        span.set_attribute.assert_any_call(ATTR_APPROVAL_MODE, "auto_edit")

class TestAuthorize:
    async def test_allow_passes(self, tmp_path: Path) -> None:
        gate = PolicyGate(None, config=_config(tmp_path))
        result = await gate.authorize({"name": "glob", "args": {"pattern": "*.py"}})
        assert result.decision == PolicyDecision.ALLOW

    async def test_deny_raises(self, tmp_path: Path) -> None:
        gate = PolicyGate({"tools": {"exclude": ["web_fetch"]}}, config=_config(tmp_path))
        with pytest.raises(ApprovalDeniedError, match="denied by policy") as exc_info:
            await gate.authorize({"name": "web_fetch"})
        assert exc_info.value.tool_name == "web_fetch"

    async def test_ask_without_approver_raises(self, tmp_path: Path) -> None:
        gate = PolicyGate(None, config=_config(tmp_path))
        with pytest.raises(ApprovalDeniedError, match="no approver configured"):
            await gate.authorize({"name": "web_fetch"})

    async def test_ask_approved(self, tmp_path: Path) -> None:
        approver = RecordingApprover(approve=True)
        gate = PolicyGate(None, config=_config(tmp_path), approver=approver)

        result = await gate.authorize({"name": "web_fetch", "args": {"url": "https://x"}})

        assert result.decision == PolicyDecision.ASK_USER
        assert len(approver.requests) == 1
        request = approver.requests[0]
        assert request.tool_name == "web_fetch"
        assert request.arguments == {"url": "https://x"}
        assert request.reason == "no matching rule"

    async def test_ask_refused(self, tmp_path: Path) -> None:
        approver = RecordingApprover(approve=False, reason="user said no")
        gate = PolicyGate(None, config=_config(tmp_path), approver=approver)
        with pytest.raises(ApprovalDeniedError, match="user said no"):
            await gate.authorize({"name": "web_fetch"})

    async def test_deny_never_consults_approver(self, tmp_path: Path) -> None:
        approver = RecordingApprover(approve=True)
        gate = PolicyGate(
            {"tools": {"exclude": ["web_fetch"]}},
            config=_config(tmp_path),
            approver=approver,
        )
        with pytest.raises(ApprovalDeniedError):
            await gate.authorize({"name": "web_fetch"})
        assert approver.requests == []

    async def test_auto_approver(self, tmp_path: Path) -> None:
        gate = PolicyGate(None, config=_config(tmp_path), approver=AutoApprover())
        result = await gate.authorize({"name": "web_fetch"})
        assert result.decision == PolicyDecision.ASK_USER

    async def test_malformed_invocation(self, tmp_path: Path) -> None:
        gate = PolicyGate(None, config=_config(tmp_path))
        with pytest.raises(InvalidInvocationError):
            await gate.authorize({"args": {}})
