"""Single-deadline timer driving salt rotation.

The timer holds at most one pending deadline. ``set_timeout_in`` replaces it,
``cancel`` clears it, and ``dispatch`` runs the handler once the deadline
passes. The handler is expected to re-arm the timer.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class RotationTimer:
    """Re-armable timer for an async handler.

    Parameters
    ----------
    handler : Callable[[], Awaitable[None]]
        Coroutine function invoked when the deadline passes.
    """

    def __init__(self, handler: Callable[[], Awaitable[None]]):
        self._handler = handler
        self._deadline: float | None = None
        self._wake = asyncio.Event()
        self._stopped = False

    @property
    def pending(self) -> bool:
        """Whether a deadline is currently armed."""
        return self._deadline is not None

    @property
    def remaining(self) -> float | None:
        """Seconds until the pending deadline, or None if nothing is armed."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def set_timeout_in(self, seconds: float) -> None:
        """Arm the timer to fire ``seconds`` from now, replacing any deadline."""
        self._deadline = time.monotonic() + seconds
        self._wake.set()

    def cancel(self) -> None:
        """Clear the pending deadline without firing."""
        self._deadline = None
        self._wake.set()

    def stop(self) -> None:
        """Make ``dispatch`` return at its next wake-up."""
        self._stopped = True
        self._deadline = None
        self._wake.set()

    async def dispatch(self) -> None:
        """Wait for deadlines and fire the handler until stopped."""
        self._stopped = False
        while not self._stopped:
            self._wake.clear()
            if self._deadline is None:
                await self._wake.wait()
                continue

            delay = self._deadline - time.monotonic()
            if delay > 0:
                try:
                    await asyncio.wait_for(self._wake.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
                continue

            self._deadline = None
            try:
                await self._handler()
            except Exception as e:
                logger.error(
                    "Error in rotation timer handler",
                    extra={"error": str(e)},
                    exc_info=True,
                )
