"""Write-policy decision returned to the cache relay."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class PolicyAction(StrEnum):
    """Verdict on a client-submitted write."""

    ACCEPT = "accept"
    REJECT = "reject"


@dataclass(frozen=True, slots=True)
class PolicyDecision:
    """Sole output of the write-policy gate.

    Attributes:
        action: [PolicyAction][relaycache.models.policy.PolicyAction] verdict.
        message: Optional human-readable reason shown to the client.
    """

    action: PolicyAction
    message: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "action", PolicyAction(self.action))

    @property
    def accepted(self) -> bool:
        return self.action is PolicyAction.ACCEPT

    def to_dict(self) -> dict[str, Any]:
        """Render the hook output object (``{"action": ..., "msg": ...}``)."""
        result: dict[str, Any] = {"action": self.action.value}
        if self.message is not None:
            result["msg"] = self.message
        return result
