"""Background credential renewal."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

log = logging.getLogger(__name__)


class RenewalScheduler:
    """Calls `tick` every `interval` seconds until stopped.

    The scheduler belongs to the session, not to a screen: the controller
    starts it when the session becomes authenticated and stops it on leaving
    that phase.
    """

    def __init__(self, tick: Callable[[], Awaitable[None]], interval: float):
        if interval <= 0:
            raise ValueError("renewal interval must be positive")
        self._tick = tick
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        log.debug(f"Renewal scheduler armed (every {self.interval:.0f}s)")

    def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        log.debug("Renewal scheduler stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self._tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                # a failed tick must not kill the timer
                log.exception("Credential renewal tick crashed")
