"""
Authentication flow controller.

Holds exactly one FlowState variant at a time and moves between them in
response to user intents:

    LoggedOut ──sign-up──> SigningUp ──sign-in──> LoggedOut
    LoggedOut ──forgot──> AwaitingReset ──code sent──> VerifyingOtp
    VerifyingOtp ──verified──> ResettingPassword ──reset──> LoggedOut
    VerifyingOtp ──back──> AwaitingReset (contact preserved)

State values are immutable and replaced wholesale; the OtpSession inside
VerifyingOtp is the only mutable entity and is closed whenever the flow
leaves that variant.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, ClassVar, Dict, FrozenSet, List, Optional, Union

from .config import OtpConfig
from .errors import ActionResult
from .formatting import mask_contact
from .gateway import AuthGateway, AuthSession, GatewayResult, call_gateway
from .otp import OtpSession
from .timer import CountdownTimer, Scheduler
from .validators import (
    ValidationResult,
    validate_confirmation,
    validate_contact,
    validate_name,
    validate_password_create,
    validate_password_login,
)

logger = logging.getLogger(__name__)

TERMS_REQUIRED_MESSAGE = "You must accept the terms and conditions"
NEW_PASSWORD_REQUIRED_MESSAGE = "New password is required"
CONFIRM_NEW_PASSWORD_MESSAGE = "Please confirm your new password"


class AuthStep(str, Enum):
    """Step identifiers as exchanged with presentation layers."""
    LOGIN = "login"
    SIGNUP = "signup"
    FORGOT_PASSWORD = "forgot-password"
    OTP_VERIFICATION = "otp-verification"
    RESET_PASSWORD = "reset-password"

    @classmethod
    def parse(cls, value) -> "AuthStep":
        """Resolve a step identifier; anything unrecognised means LOGIN."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            logger.warning(f"Unknown step {value!r}, falling back to {cls.LOGIN.value}")
            return cls.LOGIN


# ----------------------------------------------------------------------
# Drafts
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class CredentialDraft:
    """Form input for the active step. Replaced on every keystroke."""
    name: str = ""
    contact: str = ""
    password: str = ""
    confirm_password: str = ""
    accept_terms: bool = False

    def with_field(self, name: str, value) -> "CredentialDraft":
        if name not in DRAFT_FIELDS:
            raise ValueError(f"Unknown draft field: {name}")
        problem = field_type_error(name, value)
        if problem:
            raise TypeError(f"{name}: {problem}")
        if value is None:
            value = ""
        return replace(self, **{name: value})


DRAFT_FIELDS = ("name", "contact", "password", "confirm_password", "accept_terms")
PASSWORD_FIELDS = frozenset({"password", "confirm_password"})

FLAG_FIELD_MESSAGE = "Must be true or false"
TEXT_FIELD_MESSAGE = "Must be text"


def field_type_error(name: str, value) -> Optional[str]:
    """Message for a value of the wrong type for draft field ``name``, else None."""
    if name == "accept_terms":
        return None if isinstance(value, bool) else FLAG_FIELD_MESSAGE
    if value is None or isinstance(value, str):
        return None
    return TEXT_FIELD_MESSAGE


# ----------------------------------------------------------------------
# Flow states
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class StepState:
    """Fields every step carries."""
    step: ClassVar[AuthStep]
    editable: ClassVar[FrozenSet[str]] = frozenset()

    draft: CredentialDraft = field(default_factory=CredentialDraft)
    field_errors: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    notice: Optional[str] = None
    revealed: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class LoggedOut(StepState):
    step: ClassVar[AuthStep] = AuthStep.LOGIN
    editable: ClassVar[FrozenSet[str]] = frozenset({"contact", "password"})

    session: Optional[AuthSession] = None


@dataclass(frozen=True)
class SigningUp(StepState):
    step: ClassVar[AuthStep] = AuthStep.SIGNUP
    editable: ClassVar[FrozenSet[str]] = frozenset(DRAFT_FIELDS)


@dataclass(frozen=True)
class AwaitingReset(StepState):
    step: ClassVar[AuthStep] = AuthStep.FORGOT_PASSWORD
    editable: ClassVar[FrozenSet[str]] = frozenset({"contact"})

    contact: Optional[str] = None


@dataclass(frozen=True)
class VerifyingOtp(StepState):
    step: ClassVar[AuthStep] = AuthStep.OTP_VERIFICATION

    contact: str = ""
    session: Optional[OtpSession] = field(default=None, compare=False)


@dataclass(frozen=True)
class ResettingPassword(StepState):
    step: ClassVar[AuthStep] = AuthStep.RESET_PASSWORD
    editable: ClassVar[FrozenSet[str]] = frozenset({"password", "confirm_password"})

    contact: str = ""


FlowState = Union[LoggedOut, SigningUp, AwaitingReset, VerifyingOtp, ResettingPassword]

Listener = Callable[["FlowController"], None]


def _collect_errors(checks: Dict[str, ValidationResult]) -> Dict[str, str]:
    return {name: result.error for name, result in checks.items() if not result.valid}


class FlowController:
    """
    Top-level state machine for the authentication screens.

    Presentation layers read ``state`` (or a view built from it), forward
    intents, and re-render when notified through ``subscribe``.

    Usage:
        controller = FlowController(DemoAuthGateway())
        controller.choose_forgot_password()
        controller.update_field("contact", "user@example.com")
        await controller.submit()
    """

    def __init__(
        self,
        gateway: AuthGateway,
        config: Optional[OtpConfig] = None,
        scheduler: Optional[Scheduler] = None,
        initial_step: Union[str, AuthStep] = AuthStep.LOGIN
    ):
        self.gateway = gateway
        self.config = config or OtpConfig()
        self.scheduler = scheduler
        self.authenticated: Optional[AuthSession] = None

        self._busy = False
        self._closed = False
        self._listeners: List[Listener] = []
        self._state: FlowState = LoggedOut()

        if AuthStep.parse(initial_step) != AuthStep.LOGIN:
            self.navigate(initial_step)

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def step(self) -> AuthStep:
        return self._state.step

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def otp_session(self) -> Optional[OtpSession]:
        if isinstance(self._state, VerifyingOtp):
            return self._state.session
        return None

    def subscribe(self, listener: Listener):
        """Register a callback invoked after every state change and countdown tick."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self):
        for listener in list(self._listeners):
            listener(self)

    def _set_state(self, new_state: FlowState):
        old_state = self._state
        if isinstance(old_state, VerifyingOtp) and old_state.session is not None:
            if not isinstance(new_state, VerifyingOtp) or new_state.session is not old_state.session:
                old_state.session.close()

        self._state = new_state
        if type(old_state) is not type(new_state):
            logger.info(f"Flow step {old_state.step.value} -> {new_state.step.value}")
        self._notify()

    def close(self):
        """Release the flow: cancels any running countdown and drops listeners."""
        if self._closed:
            return
        self._closed = True
        session = self.otp_session
        if session is not None:
            session.close()
        self._listeners.clear()
        logger.debug("Flow closed")

    # ------------------------------------------------------------------
    # Field intents
    # ------------------------------------------------------------------

    def update_field(self, name: str, value) -> ActionResult:
        """Replace one draft field of the active step."""
        state = self._state
        if name not in state.editable:
            return ActionResult.illegal(f"Field {name!r} is not editable on {state.step.value}")

        problem = field_type_error(name, value)
        if problem:
            self._set_state(replace(state, field_errors={**state.field_errors, name: problem}))
            return ActionResult.invalid({name: problem})

        field_errors = {k: v for k, v in state.field_errors.items() if k != name}
        draft = state.draft.with_field(name, value)
        if isinstance(state, AwaitingReset):
            # The captured identifier follows the contact being typed
            state = replace(state, contact=draft.contact or None)
        self._set_state(replace(state, draft=draft, field_errors=field_errors))
        return ActionResult.ok()

    def toggle_visibility(self, name: str) -> ActionResult:
        """Show or hide a password field."""
        state = self._state
        if name not in PASSWORD_FIELDS or name not in state.editable:
            return ActionResult.illegal(f"Field {name!r} has no visibility toggle on {state.step.value}")

        self._set_state(replace(state, revealed=state.revealed ^ {name}))
        return ActionResult.ok()

    # ------------------------------------------------------------------
    # Navigation intents
    # ------------------------------------------------------------------

    def navigate(self, step: Union[str, AuthStep]) -> ActionResult:
        """
        Move to a step by identifier.

        Unknown identifiers resolve to the sign-in step. Code verification
        and password reset are only reachable by submitting the step
        before them.
        """
        target = AuthStep.parse(step)
        if target == self.step:
            return ActionResult.ok()
        if target == AuthStep.LOGIN:
            return self.choose_sign_in()
        if target == AuthStep.SIGNUP:
            return self.choose_sign_up()
        if target == AuthStep.FORGOT_PASSWORD:
            return self.choose_forgot_password()
        return ActionResult.illegal(f"{target.value} cannot be opened directly")

    def choose_sign_in(self) -> ActionResult:
        if self._busy:
            return ActionResult.busy()
        if not isinstance(self._state, LoggedOut):
            self._set_state(LoggedOut())
        return ActionResult.ok()

    def choose_sign_up(self) -> ActionResult:
        if self._busy:
            return ActionResult.busy()
        if isinstance(self._state, SigningUp):
            return ActionResult.ok()
        if not isinstance(self._state, LoggedOut):
            return ActionResult.illegal("Sign-up is only available from sign-in")
        self._set_state(SigningUp())
        return ActionResult.ok()

    def choose_forgot_password(self) -> ActionResult:
        if self._busy:
            return ActionResult.busy()
        if isinstance(self._state, AwaitingReset):
            return ActionResult.ok()
        if isinstance(self._state, VerifyingOtp):
            return self.back()
        if not isinstance(self._state, LoggedOut):
            return ActionResult.illegal("Password recovery is only available from sign-in")
        self._set_state(AwaitingReset())
        return ActionResult.ok()

    def back(self) -> ActionResult:
        """Return to the previous step, keeping the contact when leaving code entry."""
        if self._busy:
            return ActionResult.busy()

        state = self._state
        if isinstance(state, (SigningUp, AwaitingReset)):
            self._set_state(LoggedOut())
        elif isinstance(state, VerifyingOtp):
            self._set_state(AwaitingReset(contact=state.contact, draft=CredentialDraft(contact=state.contact)))
        else:
            return ActionResult.illegal(f"Nothing to go back to from {state.step.value}")
        return ActionResult.ok()

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    async def submit(self) -> ActionResult:
        """Submit the active step's form."""
        if self._closed:
            return ActionResult.illegal("Flow is closed")
        if self._busy:
            return ActionResult.busy()

        state = self._state
        if isinstance(state, LoggedOut):
            return await self._submit_sign_in(state)
        if isinstance(state, SigningUp):
            return await self._submit_sign_up(state)
        if isinstance(state, AwaitingReset):
            return await self._submit_forgot_password(state)
        if isinstance(state, VerifyingOtp):
            return await self._submit_code(state)
        return await self._submit_reset_password(state)

    def _reject(self, state: FlowState, field_errors: Dict[str, str]) -> ActionResult:
        self._set_state(replace(state, field_errors=field_errors, error=None))
        return ActionResult.invalid(field_errors)

    async def _call(self, operation, *args) -> Optional[GatewayResult]:
        """Run one gateway call behind the busy gate. None means the flow closed meanwhile."""
        self._busy = True
        self._set_state(replace(self._state, field_errors={}, error=None, notice=None))
        try:
            result = await call_gateway(operation, *args)
        finally:
            self._busy = False

        if self._closed:
            return None
        return result

    def _fail(self, result: GatewayResult) -> ActionResult:
        self._set_state(replace(self._state, error=result.error))
        logger.warning(f"{self.step.value} failed: {result.error}")
        return ActionResult.gateway_failed(result.error)

    async def _submit_sign_in(self, state: LoggedOut) -> ActionResult:
        draft = state.draft
        errors = _collect_errors({
            "contact": validate_contact(draft.contact),
            "password": validate_password_login(draft.password),
        })
        if errors:
            return self._reject(state, errors)

        result = await self._call(self.gateway.sign_in, draft.contact, draft.password)
        if result is None:
            return ActionResult.illegal("Flow is closed")
        if not result.success:
            return self._fail(result)

        self.authenticated = result.session
        logger.info(f"Signed in as {mask_contact(draft.contact)}")
        self._set_state(LoggedOut(session=result.session, notice="Signed in successfully"))
        return ActionResult.ok()

    async def _submit_sign_up(self, state: SigningUp) -> ActionResult:
        draft = state.draft
        errors = _collect_errors({
            "name": validate_name(draft.name),
            "contact": validate_contact(draft.contact),
            "password": validate_password_create(draft.password),
            "confirm_password": validate_confirmation(draft.password, draft.confirm_password),
        })
        if not draft.accept_terms:
            errors["accept_terms"] = TERMS_REQUIRED_MESSAGE
        if errors:
            return self._reject(state, errors)

        result = await self._call(self.gateway.sign_up, draft.name.strip(), draft.contact, draft.password)
        if result is None:
            return ActionResult.illegal("Flow is closed")
        if not result.success:
            return self._fail(result)

        self.authenticated = result.session
        logger.info(f"Account created for {mask_contact(draft.contact)}")
        self._set_state(LoggedOut(session=result.session, notice="Account created successfully"))
        return ActionResult.ok()

    async def _submit_forgot_password(self, state: AwaitingReset) -> ActionResult:
        contact = state.draft.contact
        errors = _collect_errors({"contact": validate_contact(contact)})
        if errors:
            return self._reject(state, errors)

        result = await self._call(self.gateway.send_verification_code, contact)
        if result is None:
            return ActionResult.illegal("Flow is closed")
        if not result.success:
            return self._fail(result)

        self._open_code_entry(contact)
        return ActionResult.ok()

    def _open_code_entry(self, contact: str):
        """Enter VerifyingOtp with a brand new session and countdown."""
        previous = self.otp_session
        if previous is not None:
            previous.close()

        timer = CountdownTimer(
            scheduler=self.scheduler,
            on_tick=self._on_countdown_tick,
            on_expired=self._on_countdown_expired,
        )
        session = OtpSession(
            contact=contact,
            gateway=self.gateway,
            timer=timer,
            code_length=self.config.code_length,
            resend_seconds=self.config.resend_seconds,
        )
        self._set_state(VerifyingOtp(contact=contact, session=session, draft=CredentialDraft(contact=contact)))
        session.start()

    async def _submit_code(self, state: VerifyingOtp) -> ActionResult:
        session = state.session
        self._busy = True
        self._notify()
        try:
            result = await session.submit()
        finally:
            self._busy = False

        if self._closed or self.otp_session is not session:
            return result

        if session.is_verified:
            self._set_state(ResettingPassword(contact=state.contact))
        else:
            self._notify()
        return result

    async def _submit_reset_password(self, state: ResettingPassword) -> ActionResult:
        draft = state.draft
        errors = _collect_errors({
            "password": validate_password_create(draft.password, NEW_PASSWORD_REQUIRED_MESSAGE),
            "confirm_password": validate_confirmation(
                draft.password, draft.confirm_password, CONFIRM_NEW_PASSWORD_MESSAGE
            ),
        })
        if errors:
            return self._reject(state, errors)

        result = await self._call(self.gateway.reset_password, state.contact, draft.password)
        if result is None:
            return ActionResult.illegal("Flow is closed")
        if not result.success:
            return self._fail(result)

        logger.info(f"Password reset for {mask_contact(state.contact)}")
        self._set_state(LoggedOut(notice="Password reset successful"))
        return ActionResult.ok()

    # ------------------------------------------------------------------
    # Code entry intents
    # ------------------------------------------------------------------

    def set_digit(self, index: int, value: str) -> ActionResult:
        session = self.otp_session
        if session is None:
            return ActionResult.illegal("No verification code is being entered")
        result = session.set_digit(index, value)
        if result.success:
            self._notify()
        return result

    def backspace(self, index: int) -> ActionResult:
        session = self.otp_session
        if session is None:
            return ActionResult.illegal("No verification code is being entered")
        result = session.backspace(index)
        if result.success:
            self._notify()
        return result

    def paste(self, text: str) -> ActionResult:
        session = self.otp_session
        if session is None:
            return ActionResult.illegal("No verification code is being entered")
        result = session.paste(text)
        if result.success:
            self._notify()
        return result

    async def resend(self) -> ActionResult:
        """Request a new code once the countdown has run out."""
        session = self.otp_session
        if session is None:
            return ActionResult.illegal("No verification code is being entered")
        if self._busy:
            return ActionResult.busy()

        self._busy = True
        try:
            result = await session.resend()
        finally:
            self._busy = False

        if not self._closed:
            self._notify()
        return result

    def _on_countdown_tick(self, remaining: int):
        logger.debug(f"Resend countdown: {remaining}s")
        self._notify()

    def _on_countdown_expired(self):
        logger.info("Resend countdown finished, resend enabled")
        self._notify()
