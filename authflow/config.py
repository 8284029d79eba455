"""Configuration module for the AuthFlow core and its adapters."""

import os
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()


@dataclass
class OtpConfig:
    """One-time-code entry and resend settings."""
    code_length: int = field(default_factory=lambda: int(os.getenv("OTP_CODE_LENGTH", "6")))
    # Seconds the user must wait before a code may be resent
    resend_seconds: int = field(default_factory=lambda: int(os.getenv("OTP_RESEND_SECONDS", "60")))


@dataclass
class DemoGatewayConfig:
    """In-memory demo gateway behaviour."""
    verification_code: str = field(default_factory=lambda: os.getenv("DEMO_VERIFICATION_CODE", "123456"))
    latency_seconds: float = field(default_factory=lambda: float(os.getenv("DEMO_GATEWAY_LATENCY_SECONDS", "0")))


@dataclass
class ApiConfig:
    """HTTP adapter settings."""
    host: str = field(default_factory=lambda: os.getenv("API_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("API_PORT", "8000")))
    # Idle flows are discarded after this many seconds
    flow_expiry_seconds: int = field(default_factory=lambda: int(os.getenv("FLOW_EXPIRY_SECONDS", "600")))


@dataclass
class Config:
    """Main configuration container."""
    otp: OtpConfig = field(default_factory=OtpConfig)
    demo: DemoGatewayConfig = field(default_factory=DemoGatewayConfig)
    api: ApiConfig = field(default_factory=ApiConfig)

    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))


def load_config() -> Config:
    """Load configuration from environment variables."""
    return Config()
