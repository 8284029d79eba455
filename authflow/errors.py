"""
Outcome types shared by every intent the core accepts.

Nothing in the flow raises for a user or collaborator mistake. Intents
return an ActionResult instead, tagged with the kind of refusal:

- validation: inline field errors, the user can fix them in place
- gateway: the remote call failed, surfaced as a form-level message
- illegal_transition: the action is not valid in the current state
- busy: a gateway call for this flow is still in flight
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    GATEWAY = "gateway"
    ILLEGAL_TRANSITION = "illegal_transition"
    BUSY = "busy"


@dataclass(frozen=True)
class ActionResult:
    """Result of one intent."""
    success: bool
    kind: Optional[ErrorKind] = None
    error: Optional[str] = None
    field_errors: Dict[str, str] = field(default_factory=dict)
    # Advisory focus hint for OTP boxes; the presentation layer owns focus
    focus: Optional[int] = None

    @classmethod
    def ok(cls, focus: Optional[int] = None) -> "ActionResult":
        return cls(success=True, focus=focus)

    @classmethod
    def invalid(cls, field_errors: Dict[str, str]) -> "ActionResult":
        return cls(success=False, kind=ErrorKind.VALIDATION, field_errors=dict(field_errors))

    @classmethod
    def gateway_failed(cls, error: str, focus: Optional[int] = None) -> "ActionResult":
        return cls(success=False, kind=ErrorKind.GATEWAY, error=error, focus=focus)

    @classmethod
    def illegal(cls, reason: str) -> "ActionResult":
        return cls(success=False, kind=ErrorKind.ILLEGAL_TRANSITION, error=reason)

    @classmethod
    def busy(cls) -> "ActionResult":
        return cls(success=False, kind=ErrorKind.BUSY, error="Another request is in progress")

    @property
    def is_illegal(self) -> bool:
        return self.kind == ErrorKind.ILLEGAL_TRANSITION

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "kind": self.kind.value if self.kind else None,
            "error": self.error,
            "field_errors": dict(self.field_errors),
            "focus": self.focus,
        }
