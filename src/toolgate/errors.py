"""Shared error types for the policy gate."""


class ToolGateError(Exception):
    """Base error for all gate failures."""


class InvalidInvocationError(ToolGateError):
    """A malformed tool invocation was handed to the policy engine.

    Fatal to the evaluation, never to the engine.  Callers must treat it as
    "do not execute".
    """

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__("Invalid tool invocation" + (f": {detail}" if detail else ""))


class InvalidRulePatternError(ToolGateError):
    """A rule's argument pattern is not a valid regular expression."""

    def __init__(self, pattern: str, detail: str = "") -> None:
        self.pattern = pattern
        self.detail = detail
        msg = f"Invalid rule pattern: {pattern!r}"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


class PolicyLoadError(ToolGateError):
    """The persisted policy document could not be read or parsed."""

    def __init__(self, path: object, detail: str = "") -> None:
        self.path = path
        self.detail = detail
        msg = f"Failed to load policy from {path}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class InvalidSettingsError(ToolGateError):
    """The settings value handed to the policy builder has the wrong shape."""


class ApprovalDeniedError(ToolGateError):
    """The gate refused execution of a tool call."""

    def __init__(self, tool_name: str, reason: str = "") -> None:
        self.tool_name = tool_name
        self.reason = reason
        msg = f"Approval denied for tool: {tool_name}"
        if reason:
            msg += f" - {reason}"
        super().__init__(msg)
