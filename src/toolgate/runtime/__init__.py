"""Runtime gate — enforces policy decisions before tool execution."""

from toolgate.runtime.approver import ApprovalRequest, ApprovalResult, Approver, AutoApprover
from toolgate.runtime.gate import ActivePolicy, PolicyGate

__all__ = [
    "ActivePolicy",
    "ApprovalRequest",
    "ApprovalResult",
    "Approver",
    "AutoApprover",
    "PolicyGate",
]
