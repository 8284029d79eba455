"""
Read-only snapshot of a flow for presentation layers.

Both the terminal UI and the HTTP API render from FlowView; neither
reaches into FlowController state directly.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .flow import PASSWORD_FIELDS, FlowController, LoggedOut, ResettingPassword, SigningUp, VerifyingOtp
from .formatting import format_countdown, mask_contact
from .validators import PasswordRequirements, PasswordStrength, password_requirements, score_strength


@dataclass
class OtpView:
    """Code entry portion of the view."""
    masked_contact: str
    digits: List[str]
    is_complete: bool
    remaining_seconds: int
    remaining: str
    can_resend: bool
    is_verifying: bool
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "masked_contact": self.masked_contact,
            "digits": list(self.digits),
            "is_complete": self.is_complete,
            "remaining_seconds": self.remaining_seconds,
            "remaining": self.remaining,
            "can_resend": self.can_resend,
            "is_verifying": self.is_verifying,
            "error": self.error,
        }


@dataclass
class FlowView:
    """Everything a screen needs to render the current step."""
    step: str
    is_busy: bool
    fields: Dict[str, object] = field(default_factory=dict)
    field_errors: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    notice: Optional[str] = None
    revealed: List[str] = field(default_factory=list)
    strength: Optional[PasswordStrength] = None
    requirements: Optional[PasswordRequirements] = None
    signed_in_as: Optional[str] = None
    otp: Optional[OtpView] = None

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "is_busy": self.is_busy,
            "fields": dict(self.fields),
            "field_errors": dict(self.field_errors),
            "error": self.error,
            "notice": self.notice,
            "revealed": list(self.revealed),
            "strength": self.strength.to_dict() if self.strength else None,
            "requirements": self.requirements.to_dict() if self.requirements else None,
            "signed_in_as": self.signed_in_as,
            "otp": self.otp.to_dict() if self.otp else None,
        }


def _visible_fields(state) -> Dict[str, object]:
    """Draft values for the step's editable fields. Hidden passwords are never echoed."""
    values = {}
    for name in sorted(state.editable):
        value = getattr(state.draft, name)
        if name in PASSWORD_FIELDS and name not in state.revealed:
            value = "*" * len(value)
        values[name] = value
    return values


def build_view(controller: FlowController) -> FlowView:
    """Build a FlowView from the controller's current state."""
    state = controller.state

    view = FlowView(
        step=state.step.value,
        is_busy=controller.is_busy,
        fields=_visible_fields(state),
        field_errors=dict(state.field_errors),
        error=state.error,
        notice=state.notice,
        revealed=sorted(state.revealed),
    )

    if isinstance(state, (SigningUp, ResettingPassword)):
        view.requirements = password_requirements(state.draft.password)
        if state.draft.password:
            view.strength = score_strength(state.draft.password)

    if isinstance(state, LoggedOut) and state.session is not None:
        view.signed_in_as = mask_contact(state.session.identifier)

    if isinstance(state, VerifyingOtp) and state.session is not None:
        session = state.session
        view.otp = OtpView(
            masked_contact=mask_contact(state.contact),
            digits=list(session.digits),
            is_complete=session.is_complete,
            remaining_seconds=session.remaining_seconds,
            remaining=format_countdown(session.remaining_seconds),
            can_resend=session.can_resend,
            is_verifying=session.is_busy,
            error=session.error,
        )

    return view
