"""
In-memory registry of live flows.

Used by the HTTP adapter: each browser/app session owns one
FlowController, addressed by an opaque flow id. Flows idle longer than
the configured expiry are closed and forgotten, which also cancels any
countdown they were running.
"""

import time
import secrets
import logging
from typing import Callable, Dict, Optional, Union
from dataclasses import dataclass

from .config import Config, load_config
from .flow import AuthStep, FlowController
from .gateway import AuthGateway
from .timer import Scheduler

logger = logging.getLogger(__name__)


@dataclass
class FlowEntry:
    """A registered flow and its bookkeeping."""
    flow_id: str
    controller: FlowController
    created_at: float
    last_seen: float


class FlowRegistry:
    """
    Creates, looks up and expires FlowControllers.

    Usage:
        registry = FlowRegistry(lambda: DemoAuthGateway())
        entry = registry.create("login")
        controller = registry.get(entry.flow_id)
    """

    def __init__(
        self,
        gateway_factory: Callable[[], AuthGateway],
        config: Optional[Config] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], float] = time.time
    ):
        self._gateway_factory = gateway_factory
        self._config = config or load_config()
        self._scheduler = scheduler
        self._clock = clock
        self._flows: Dict[str, FlowEntry] = {}

    @property
    def expiry_seconds(self) -> int:
        return self._config.api.flow_expiry_seconds

    def create(self, step: Union[str, AuthStep, None] = None) -> FlowEntry:
        """
        Start a new flow.

        Args:
            step: Initial step identifier (unknown values start at sign-in)

        Returns:
            The registered FlowEntry
        """
        self._cleanup_expired()

        controller = FlowController(
            gateway=self._gateway_factory(),
            config=self._config.otp,
            scheduler=self._scheduler,
            initial_step=step or AuthStep.LOGIN,
        )
        flow_id = f"flow_{secrets.token_urlsafe(16)}"
        now = self._clock()
        entry = FlowEntry(flow_id=flow_id, controller=controller, created_at=now, last_seen=now)

        self._flows[flow_id] = entry
        logger.info(f"Created flow {flow_id} at step {controller.step.value}")
        return entry

    def get(self, flow_id: str) -> Optional[FlowController]:
        """
        Get a live flow and mark it as seen.

        Returns:
            The controller, or None when unknown or expired
        """
        entry = self._flows.get(flow_id)
        if entry is None:
            return None

        now = self._clock()
        if now - entry.last_seen > self.expiry_seconds:
            self._drop(flow_id)
            logger.info(f"Flow {flow_id} expired")
            return None

        entry.last_seen = now
        return entry.controller

    def discard(self, flow_id: str) -> bool:
        """
        Close and forget a flow.

        Returns:
            True if the flow existed
        """
        if flow_id not in self._flows:
            return False
        self._drop(flow_id)
        logger.info(f"Flow {flow_id} discarded")
        return True

    def _drop(self, flow_id: str):
        entry = self._flows.pop(flow_id)
        entry.controller.close()

    def _cleanup_expired(self):
        """Close every flow idle for longer than the expiry."""
        now = self._clock()
        expired = [
            flow_id for flow_id, entry in self._flows.items()
            if now - entry.last_seen > self.expiry_seconds
        ]
        for flow_id in expired:
            self._drop(flow_id)

        if expired:
            logger.info(f"Cleaned up {len(expired)} expired flows")

    def active_count(self) -> int:
        """Count of flows that have not expired."""
        self._cleanup_expired()
        return len(self._flows)

    def close_all(self):
        """Close every flow, e.g. on shutdown."""
        for flow_id in list(self._flows):
            self._drop(flow_id)
        logger.info("All flows closed")
