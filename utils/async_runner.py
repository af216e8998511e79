import asyncio
import logging
import threading
from concurrent.futures import Future
from typing import Any, Awaitable, Optional

log = logging.getLogger(__name__)


class BackgroundLoop:
    """An asyncio loop on a daemon thread.

    Streamlit reruns the script on its own thread for every interaction, while
    the session controller and its renewal timer need one long-lived loop.
    Coroutines are handed over with `run` (wait for the result) or `submit`
    (fire and forget).
    """

    def __init__(self, name: str = "session-loop"):
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._serve, name=name, daemon=True)
        self._thread.start()

    def _serve(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def run(self, coro: Awaitable[Any], timeout: Optional[float] = None) -> Any:
        """Wait for `coro` on the loop; the coroutine keeps running if the wait times out."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result(timeout)

    def submit(self, coro: Awaitable[Any]) -> Future:
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        future.add_done_callback(self._log_failure)
        return future

    @staticmethod
    def _log_failure(future) -> None:
        if not future.cancelled() and future.exception() is not None:
            log.error(f"Background session task failed: {future.exception()!r}")
