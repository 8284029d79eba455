"""
Pytest configuration and shared fixtures.

This module provides common fixtures for testing:
- A manual scheduler that drives countdowns without real time
- Demo gateway and flow controller
- API client and services
"""

import os
import sys
from pathlib import Path
from typing import Any, Callable, List, Tuple

import pytest
from fastapi.testclient import TestClient

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before imports
os.environ["OTP_RESEND_SECONDS"] = "60"
os.environ["DEMO_VERIFICATION_CODE"] = "123456"
os.environ["DEMO_GATEWAY_LATENCY_SECONDS"] = "0"
os.environ["FLOW_EXPIRY_SECONDS"] = "600"

from authflow.config import load_config
from authflow.flow import FlowController
from authflow.gateway import DemoAuthGateway
from authflow.registry import FlowRegistry


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture(scope="session")
def test_config():
    """Test configuration values."""
    return {
        "test_email": "user@example.com",
        "test_phone": "+12345678901",
        "test_password": "Secure123!",
        "test_name": "Test User",
        "demo_code": "123456",
    }


# =============================================================================
# Scheduler
# =============================================================================

class ManualHandle:
    """Handle returned by ManualScheduler.call_later."""

    def __init__(self, when: float, callback: Callable[..., Any], args: Tuple[Any, ...]):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """
    Stand-in for an event loop's call_later.

    Nothing runs until advance() moves the clock forward.
    """

    def __init__(self):
        self.now = 0.0
        self._handles: List[ManualHandle] = []

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> ManualHandle:
        handle = ManualHandle(self.now + delay, callback, args)
        self._handles.append(handle)
        return handle

    @property
    def pending(self) -> List[ManualHandle]:
        return [h for h in self._handles if not h.cancelled]

    def advance(self, seconds: float):
        """Run every callback due within the next ``seconds``, in order."""
        target = self.now + seconds
        while True:
            due = [h for h in self.pending if h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self._handles.remove(handle)
            self.now = handle.when
            handle.callback(*handle.args)
        self.now = target


@pytest.fixture
def scheduler() -> ManualScheduler:
    """Manual scheduler for deterministic countdowns."""
    return ManualScheduler()


# =============================================================================
# Core Fixtures
# =============================================================================

@pytest.fixture
def gateway(test_config) -> DemoAuthGateway:
    """Demo gateway that only accepts the demo code."""
    return DemoAuthGateway(verification_code=test_config["demo_code"])


@pytest.fixture
def controller(gateway, scheduler) -> FlowController:
    """Flow controller wired to the demo gateway and manual scheduler."""
    flow = FlowController(gateway, scheduler=scheduler)
    yield flow
    flow.close()


# =============================================================================
# API Client Fixtures
# =============================================================================

@pytest.fixture
def services(scheduler, test_config):
    """Real services container whose flows tick on the manual scheduler."""
    from api.deps import Services

    config = load_config()
    flows = FlowRegistry(
        lambda: DemoAuthGateway(verification_code=test_config["demo_code"]),
        config=config,
        scheduler=scheduler
    )
    container = Services(config=config, flows=flows)
    yield container
    flows.close_all()


@pytest.fixture
def api_app():
    """Create FastAPI app for testing."""
    from api.main import app
    return app


@pytest.fixture
def api_client(api_app) -> TestClient:
    """Create synchronous test client for API."""
    return TestClient(api_app)


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "api: mark test as API endpoint test"
    )
