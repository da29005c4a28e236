"""Long-running loop driver for pipeline components.

Each component exposes one async step; ``RunLoop`` repeats it until stopped,
sleeping ``interval`` seconds after a successful step and
``error_backoff`` seconds after a failed one. The sleep function is
injectable so tests can drive loops without real delays.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Optional

from uptimer.observability import get_logger
from uptimer.observability.constants import LogEvents

logger = get_logger(__name__)

Step = Callable[[], Awaitable[object]]
Sleep = Callable[[float], Awaitable[None]]


class RunLoop:
    """Repeats a step until stopped, backing off after failures.

    Attributes:
        name: Component name used in log events
        interval: Seconds to sleep after a successful step
        error_backoff: Seconds to sleep after a failed step
    """

    def __init__(
        self,
        name: str,
        step: Step,
        *,
        interval: float = 0.0,
        error_backoff: float = 1.0,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self.name = name
        self.step = step
        self.interval = interval
        self.error_backoff = error_backoff
        self._sleep = sleep or asyncio.sleep
        self._running = False
        self.iterations = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._running

    async def run(self, max_iterations: Optional[int] = None) -> None:
        """Run the step repeatedly.

        Args:
            max_iterations: Stop after this many steps; ``None`` runs until
                ``stop()`` is called or the task is cancelled.
        """
        self._running = True
        logger.info(
            LogEvents.LOOP_STARTED,
            loop=self.name,
            interval=self.interval,
            error_backoff=self.error_backoff,
        )
        try:
            while self._running:
                if max_iterations is not None and self.iterations >= max_iterations:
                    break
                self.iterations += 1

                try:
                    await self.step()
                    delay = self.interval
                except asyncio.CancelledError:
                    logger.info(LogEvents.LOOP_CANCELLED, loop=self.name)
                    raise
                except Exception as e:
                    self.failures += 1
                    logger.error(
                        LogEvents.LOOP_ITERATION_FAILED,
                        loop=self.name,
                        error=str(e),
                        exc_info=True,
                    )
                    delay = self.error_backoff

                if max_iterations is not None and self.iterations >= max_iterations:
                    break
                if delay > 0 and self._running:
                    await self._sleep(delay)
        finally:
            self._running = False
            logger.info(LogEvents.LOOP_STOPPED, loop=self.name)

    def stop(self) -> None:
        """Ask the loop to exit after the current step."""
        self._running = False
