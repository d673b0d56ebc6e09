"""Approver protocol and implementations.

- ``Approver`` — runtime-checkable protocol for the confirmation step that
  follows an ``ASK_USER`` decision.
- ``AutoApprover`` — always approves (for testing/CI).
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ApprovalRequest(BaseModel):
    """A request to confirm a tool execution the policy could not decide."""

    tool_name: str
    arguments: Any = Field(default_factory=dict)
    reason: str = Field(default="", description="Why approval is being requested.")


class ApprovalResult(BaseModel):
    """The approver's answer."""

    approved: bool
    reason: str = Field(default="")


@runtime_checkable
class Approver(Protocol):
    """Confirms or refuses an invocation the policy deferred to a human."""

    async def request_approval(self, request: ApprovalRequest) -> ApprovalResult:
        """Ask for approval and return the decision."""
        ...


class AutoApprover:
    """Always approves — suitable for tests and CI pipelines.

    Satisfies the :class:`Approver` protocol.
    """

    async def request_approval(self, request: ApprovalRequest) -> ApprovalResult:
        logger.debug("AutoApprover: auto-approving %s", request.tool_name)
        return ApprovalResult(approved=True, reason="auto-approved")
