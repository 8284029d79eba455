"""
AuthFlow core.

Multi-step authentication flow: sign-in, sign-up, forgot password,
one-time-code verification and password reset. Presentation layers
(terminal, HTTP) drive a FlowController and render FlowView snapshots.
"""

from .config import Config, load_config
from .errors import ActionResult, ErrorKind
from .flow import (
    AuthStep,
    AwaitingReset,
    CredentialDraft,
    FlowController,
    FlowState,
    LoggedOut,
    ResettingPassword,
    SigningUp,
    VerifyingOtp,
)
from .gateway import AuthGateway, AuthSession, DemoAuthGateway, GatewayResult
from .otp import OtpSession, OtpState
from .registry import FlowRegistry
from .timer import CountdownTimer
from .view import FlowView, build_view

__all__ = [
    # Config
    "Config",
    "load_config",
    # Flow
    "AuthStep",
    "FlowController",
    "FlowState",
    "LoggedOut",
    "SigningUp",
    "AwaitingReset",
    "VerifyingOtp",
    "ResettingPassword",
    "CredentialDraft",
    # Code entry
    "OtpSession",
    "OtpState",
    "CountdownTimer",
    # Gateway
    "AuthGateway",
    "AuthSession",
    "DemoAuthGateway",
    "GatewayResult",
    # Results and views
    "ActionResult",
    "ErrorKind",
    "FlowRegistry",
    "FlowView",
    "build_view",
]
