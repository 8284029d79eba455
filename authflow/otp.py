"""
One-time-code entry and verification.

An OtpSession owns the six-slot entry buffer, the last failure message
and one CountdownTimer gating resends. A session is created when the
flow enters code verification and closed when it leaves; nothing carries
over from one session to the next.
"""

import logging
from enum import Enum
from typing import Optional, Tuple

from .errors import ActionResult
from .gateway import AuthGateway, call_gateway
from .timer import CountdownTimer
from .formatting import mask_contact

logger = logging.getLogger(__name__)

DEFAULT_CODE_LENGTH = 6
DEFAULT_RESEND_SECONDS = 60

INVALID_CODE_MESSAGE = "Invalid verification code. Please try again."


class OtpState(str, Enum):
    ENTERING = "entering"
    VERIFYING = "verifying"
    VERIFIED = "verified"


class OtpSession:
    """
    Code entry state machine: ENTERING -> VERIFYING -> VERIFIED,
    or back to ENTERING with the buffer cleared on a rejected code.

    Every mutating method returns an ActionResult; calls that are not
    valid in the current state are refused, never raised.
    """

    def __init__(
        self,
        contact: str,
        gateway: AuthGateway,
        timer: CountdownTimer,
        code_length: int = DEFAULT_CODE_LENGTH,
        resend_seconds: int = DEFAULT_RESEND_SECONDS
    ):
        if not contact:
            raise ValueError("OTP session requires a contact identifier")

        self.contact = contact
        self.gateway = gateway
        self.timer = timer
        self.code_length = code_length
        self.resend_seconds = resend_seconds

        self.digits: Tuple[str, ...] = ("",) * code_length
        self.error: Optional[str] = None
        self.state = OtpState.ENTERING
        self._resending = False
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        """Start the resend countdown."""
        self.timer.start(self.resend_seconds)
        logger.info(f"OTP session opened for {mask_contact(self.contact)}")

    def close(self):
        """Cancel the countdown. The session is unusable afterwards."""
        if self._closed:
            return
        self._closed = True
        self.timer.cancel()
        logger.debug(f"OTP session closed for {mask_contact(self.contact)}")

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def code(self) -> str:
        return "".join(self.digits)

    @property
    def is_complete(self) -> bool:
        return all(self.digits)

    @property
    def is_verified(self) -> bool:
        return self.state == OtpState.VERIFIED

    @property
    def is_busy(self) -> bool:
        return self.state == OtpState.VERIFYING or self._resending

    @property
    def can_resend(self) -> bool:
        return not self._closed and not self.timer.is_running and not self.is_busy

    @property
    def remaining_seconds(self) -> int:
        return self.timer.remaining_seconds

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _refuse_edit(self) -> Optional[ActionResult]:
        if self._closed:
            return ActionResult.illegal("Verification session is closed")
        if self.state != OtpState.ENTERING:
            return ActionResult.illegal(f"Cannot edit the code while {self.state.value}")
        return None

    def _check_index(self, index: int) -> Optional[ActionResult]:
        if not 0 <= index < self.code_length:
            return ActionResult.illegal(f"Digit index {index} is out of range")
        return None

    # ------------------------------------------------------------------
    # Entry
    # ------------------------------------------------------------------

    def set_digit(self, index: int, value: str) -> ActionResult:
        """
        Put one numeral into slot ``index``; an empty value clears the slot.

        Returns a focus hint for the next slot when a digit was entered.
        """
        refused = self._refuse_edit() or self._check_index(index)
        if refused:
            return refused

        if len(value) > 1:
            return ActionResult.illegal("Only one character per box")
        if value and not (value.isdecimal() and value.isascii()):
            return ActionResult.illegal("Only digits are allowed")

        digits = list(self.digits)
        digits[index] = value
        self.digits = tuple(digits)
        self.error = None

        if value and index < self.code_length - 1:
            return ActionResult.ok(focus=index + 1)
        return ActionResult.ok()

    def backspace(self, index: int) -> ActionResult:
        """Clear slot ``index``, or hint a move to the previous slot if it is already empty."""
        refused = self._refuse_edit() or self._check_index(index)
        if refused:
            return refused

        if self.digits[index]:
            digits = list(self.digits)
            digits[index] = ""
            self.digits = tuple(digits)
            return ActionResult.ok(focus=index)

        if index > 0:
            return ActionResult.ok(focus=index - 1)
        return ActionResult.ok()

    def paste(self, text: str) -> ActionResult:
        """
        Fill every slot at once from pasted text.

        Non-digits are stripped first; the paste is accepted only when
        exactly ``code_length`` digits remain.
        """
        refused = self._refuse_edit()
        if refused:
            return refused

        cleaned = "".join(c for c in (text or "") if c.isdecimal() and c.isascii())
        if len(cleaned) != self.code_length:
            return ActionResult.illegal(f"Pasted code must contain exactly {self.code_length} digits")

        self.digits = tuple(cleaned)
        self.error = None
        return ActionResult.ok(focus=self.code_length - 1)

    # ------------------------------------------------------------------
    # Gateway operations
    # ------------------------------------------------------------------

    async def submit(self) -> ActionResult:
        """Verify the entered code with the gateway."""
        refused = self._refuse_edit()
        if refused:
            return refused
        if self._resending:
            return ActionResult.busy()
        if not self.is_complete:
            return ActionResult.illegal(f"Please enter all {self.code_length} digits")

        self.state = OtpState.VERIFYING
        self.error = None
        code = self.code

        logger.info(f"Verifying code for {mask_contact(self.contact)}")
        result = await call_gateway(self.gateway.verify_code, self.contact, code)

        if self._closed:
            # Session left while the call was in flight; outcome is stale
            return ActionResult.illegal("Verification session is closed")

        if result.success:
            self.state = OtpState.VERIFIED
            self.timer.cancel()
            logger.info(f"Code verified for {mask_contact(self.contact)}")
            return ActionResult.ok()

        self.state = OtpState.ENTERING
        self.digits = ("",) * self.code_length
        self.error = INVALID_CODE_MESSAGE
        logger.warning(f"Code rejected for {mask_contact(self.contact)}")
        return ActionResult.gateway_failed(self.error, focus=0)

    async def resend(self) -> ActionResult:
        """
        Ask the gateway for a new code.

        Only allowed once the countdown has expired. The countdown restarts
        after the gateway confirms the code was sent.
        """
        if self._closed or self.state == OtpState.VERIFIED:
            return ActionResult.illegal("Verification session is closed")
        if self.is_busy:
            return ActionResult.busy()
        if self.timer.is_running:
            return ActionResult.illegal(
                f"Resend available in {self.timer.remaining_seconds}s"
            )

        self._resending = True
        self.error = None
        try:
            result = await call_gateway(self.gateway.send_verification_code, self.contact)
        finally:
            self._resending = False

        if self._closed:
            return ActionResult.illegal("Verification session is closed")

        if not result.success:
            self.error = result.error or "Could not resend code"
            logger.warning(f"Resend failed for {mask_contact(self.contact)}: {self.error}")
            return ActionResult.gateway_failed(self.error)

        self.timer.start(self.resend_seconds)
        logger.info(f"Code resent to {mask_contact(self.contact)}")
        return ActionResult.ok()
