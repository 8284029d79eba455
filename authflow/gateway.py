"""
Remote auth gateway boundary.

The flow controller only talks to the outside world through AuthGateway.
Real implementations (HTTP, SMS providers) live outside this package;
DemoAuthGateway is an in-memory stand-in for local runs and tests.
"""

import asyncio
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

SIGN_IN = "sign_in"
SIGN_UP = "sign_up"
SEND_VERIFICATION_CODE = "send_verification_code"
VERIFY_CODE = "verify_code"
RESET_PASSWORD = "reset_password"

OPERATIONS = (SIGN_IN, SIGN_UP, SEND_VERIFICATION_CODE, VERIFY_CODE, RESET_PASSWORD)


@dataclass(frozen=True)
class AuthSession:
    """Session established by a successful sign-in or sign-up."""
    identifier: str
    token: str
    name: Optional[str] = None

    def to_dict(self) -> dict:
        return {"identifier": self.identifier, "name": self.name}


@dataclass(frozen=True)
class GatewayResult:
    """Outcome of one gateway call: exactly one of success or failure."""
    success: bool
    session: Optional[AuthSession] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, session: Optional[AuthSession] = None) -> "GatewayResult":
        return cls(success=True, session=session)

    @classmethod
    def failed(cls, error: str) -> "GatewayResult":
        return cls(success=False, error=error)


class AuthGateway(Protocol):
    """Port interface for the remote authentication service."""

    async def sign_in(self, identifier: str, password: str) -> GatewayResult:
        """Authenticate with identifier and password; returns a session on success."""
        ...

    async def sign_up(self, name: str, identifier: str, password: str) -> GatewayResult:
        """Create an account; returns a session on success."""
        ...

    async def send_verification_code(self, identifier: str) -> GatewayResult:
        """Send a one-time code to the identifier."""
        ...

    async def verify_code(self, identifier: str, code: str) -> GatewayResult:
        """Check a one-time code previously sent to the identifier."""
        ...

    async def reset_password(self, identifier: str, new_password: str) -> GatewayResult:
        """Set a new password for a verified identifier."""
        ...


async def call_gateway(operation: Callable[..., Awaitable[GatewayResult]], *args: Any) -> GatewayResult:
    """
    Await one gateway operation and always come back with a GatewayResult.

    Retries are the gateway's business; an exception escaping the gateway
    is logged and turned into a failure so the flow returns to its
    pre-submit state instead of crashing.
    """
    try:
        return await operation(*args)
    except Exception as e:
        name = getattr(operation, "__name__", "gateway call")
        logger.error(f"{name} raised: {e}", exc_info=True)
        return GatewayResult.failed("Something went wrong. Please try again.")


@dataclass
class GatewayCall:
    """One recorded call on the demo gateway."""
    operation: str
    identifier: str
    succeeded: bool


class DemoAuthGateway:
    """
    In-memory gateway used by the CLI, the API and tests.

    Every operation succeeds except:
    - verify_code, which accepts only ``verification_code``
    - any operation named in ``failing``

    Usage:
        gateway = DemoAuthGateway(verification_code="123456")
        result = await gateway.verify_code("user@example.com", "123456")
    """

    def __init__(
        self,
        verification_code: str = "123456",
        latency_seconds: float = 0.0,
        failing: Iterable[str] = ()
    ):
        self.verification_code = verification_code
        self.latency_seconds = latency_seconds
        self.failing = set(failing)
        self.calls: List[GatewayCall] = []

        unknown = self.failing - set(OPERATIONS)
        if unknown:
            raise ValueError(f"Unknown gateway operations: {sorted(unknown)}")

    async def _simulate(self, operation: str, identifier: str) -> bool:
        """Wait out the simulated latency and report whether the call should fail."""
        await asyncio.sleep(self.latency_seconds)
        failed = operation in self.failing
        self.calls.append(GatewayCall(operation=operation, identifier=identifier, succeeded=not failed))
        return failed

    def _new_session(self, identifier: str, name: Optional[str] = None) -> AuthSession:
        return AuthSession(identifier=identifier, token=f"sess_{secrets.token_urlsafe(24)}", name=name)

    def operations_called(self) -> Tuple[str, ...]:
        return tuple(call.operation for call in self.calls)

    async def sign_in(self, identifier: str, password: str) -> GatewayResult:
        if await self._simulate(SIGN_IN, identifier):
            logger.warning("Demo sign-in rejected")
            return GatewayResult.failed("Invalid email/phone or password")

        logger.info("Demo sign-in accepted")
        return GatewayResult.ok(self._new_session(identifier))

    async def sign_up(self, name: str, identifier: str, password: str) -> GatewayResult:
        if await self._simulate(SIGN_UP, identifier):
            logger.warning("Demo sign-up rejected")
            return GatewayResult.failed("Could not create account. Please try again.")

        logger.info("Demo sign-up accepted")
        return GatewayResult.ok(self._new_session(identifier, name=name))

    async def send_verification_code(self, identifier: str) -> GatewayResult:
        if await self._simulate(SEND_VERIFICATION_CODE, identifier):
            logger.warning("Demo code dispatch failed")
            return GatewayResult.failed("Could not send verification code. Please try again.")

        logger.info(f"Demo verification code is {self.verification_code}")
        return GatewayResult.ok()

    async def verify_code(self, identifier: str, code: str) -> GatewayResult:
        failed = await self._simulate(VERIFY_CODE, identifier)
        if failed or not secrets.compare_digest(code, self.verification_code):
            self.calls[-1].succeeded = False
            logger.warning("Demo verification rejected")
            return GatewayResult.failed("Invalid verification code. Please try again.")

        return GatewayResult.ok()

    async def reset_password(self, identifier: str, new_password: str) -> GatewayResult:
        if await self._simulate(RESET_PASSWORD, identifier):
            logger.warning("Demo password reset rejected")
            return GatewayResult.failed("Could not reset password. Please try again.")

        logger.info("Demo password reset accepted")
        return GatewayResult.ok()
