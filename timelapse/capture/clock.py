"""
Periodic capture clock.

Fires a capture callback immediately on start and then every ``interval``
seconds on the asyncio event loop. The pending ``TimerHandle`` is the
cancel token; the running flag is re-checked when the timer fires so a
stop() that lands between scheduling and firing still suppresses the
capture.
"""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CaptureClock:
    """Single-threaded re-arming timer driving frame captures."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Args:
            loop: Event loop used for scheduling. Defaults to the running
                  loop at start() time.
        """
        self._injected_loop = loop
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._running = False
        self._interval = 0.0
        self._on_capture: Optional[Callable[[], None]] = None
        self.fire_count = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def start(self, interval: float, on_capture: Callable[[], None]) -> bool:
        """
        Start firing ``on_capture``.

        Returns:
            False if the clock was already running (nothing changes).
        """
        if self._running:
            logger.debug("Capture clock already running, ignoring start")
            return False
        if interval <= 0:
            raise ValueError(f"Capture interval must be positive, got {interval}")

        # Resolved per start; a previous asyncio.run() loop may be closed
        self._loop = self._injected_loop or asyncio.get_running_loop()

        self._interval = interval
        self._on_capture = on_capture
        self._running = True
        self.fire_count = 0

        logger.info(f"Capture clock started (every {interval}s)")

        try:
            self._arm()
        except Exception:
            self._running = False
            self._handle = None
            raise
        self._invoke()
        return True

    def stop(self) -> None:
        """Cancel the pending capture. Safe to call repeatedly."""
        was_running = self._running
        self._running = False

        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

        if was_running:
            logger.info(f"Capture clock stopped after {self.fire_count} capture(s)")

    def _arm(self) -> None:
        if not self._running:
            logger.debug("Clock stopped, not scheduling next capture")
            return
        self._handle = self._loop.call_later(self._interval, self._fire)

    def _fire(self) -> None:
        self._handle = None
        # stop() may have run after this callback was queued
        if not self._running:
            return
        self._invoke()
        self._arm()

    def _invoke(self) -> None:
        self.fire_count += 1
        try:
            self._on_capture()
        except Exception as e:
            logger.error(f"Capture callback failed: {e}", exc_info=True)
