"""
Countdown timer gating OTP resends.

Ticking is cooperative: each tick schedules the next wake-up through a
scheduler exposing asyncio's ``call_later`` signature. There is never more
than one pending wake-up per timer and no background thread.
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class Cancellable(Protocol):
    def cancel(self) -> Any:
        ...


class Scheduler(Protocol):
    """Anything with asyncio's call_later, e.g. an event loop."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Cancellable:
        ...


class CountdownTimer:
    """
    Cancellable, restartable countdown.

    ``on_tick(remaining)`` fires once per elapsed interval with strictly
    decreasing values. ``on_expired()`` fires exactly once per ``start``,
    when the countdown reaches zero.

    Usage:
        timer = CountdownTimer(on_expired=enable_resend)
        timer.start(60)
    """

    def __init__(
        self,
        scheduler: Optional[Scheduler] = None,
        on_tick: Optional[Callable[[int], None]] = None,
        on_expired: Optional[Callable[[], None]] = None,
        interval: float = 1.0
    ):
        self._scheduler = scheduler
        self.on_tick = on_tick
        self.on_expired = on_expired
        self.interval = interval

        self.remaining_seconds = 0
        self.is_running = False
        self._handle: Optional[Cancellable] = None
        # Bumped on every start/cancel so stale wake-ups are ignored
        self._generation = 0

    @property
    def scheduler(self) -> Scheduler:
        if self._scheduler is None:
            self._scheduler = asyncio.get_running_loop()
        return self._scheduler

    def start(self, initial_seconds: int):
        """Start (or restart) the countdown from initial_seconds."""
        if initial_seconds < 0:
            raise ValueError("Countdown cannot start below zero")

        self._stop()
        self._generation += 1
        self.remaining_seconds = int(initial_seconds)

        if self.remaining_seconds == 0:
            self._expire()
            return

        self.is_running = True
        self._schedule(self._generation)
        logger.debug(f"Countdown started at {self.remaining_seconds}s")

    def cancel(self):
        """Stop ticking immediately. Safe to call repeatedly."""
        if self.is_running:
            logger.debug(f"Countdown cancelled at {self.remaining_seconds}s")
        self._stop()
        self._generation += 1

    def _stop(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self.is_running = False

    def _schedule(self, generation: int):
        self._handle = self.scheduler.call_later(self.interval, self._tick, generation)

    def _tick(self, generation: int):
        if generation != self._generation or not self.is_running:
            return

        self._handle = None
        self.remaining_seconds -= 1
        if self.remaining_seconds == 0:
            self.is_running = False

        if self.on_tick:
            self.on_tick(self.remaining_seconds)

        # on_tick may have cancelled or restarted us
        if generation != self._generation:
            return

        if self.remaining_seconds == 0:
            self._expire()
        else:
            self._schedule(generation)

    def _expire(self):
        self.is_running = False
        logger.debug("Countdown expired")
        if self.on_expired:
            self.on_expired()
