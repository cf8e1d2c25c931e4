from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class SingleSlotScheduler:
    """
    One delayed task at a time.

    ``schedule`` cancels whatever is still waiting in the slot and arms the new
    task, so a burst of requests collapses into the last one. A task that has
    already started is never cancelled.
    """

    def __init__(self, name: str = "task") -> None:
        self.name = name
        self._handle: asyncio.TimerHandle | None = None
        self._running: asyncio.Task[None] | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, delay: float, task: Callable[[], Awaitable[None]]) -> None:
        if self.cancel():
            logger.debug("%s re-armed", self.name)
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(max(0.0, delay), self._fire, task)

    def cancel(self) -> bool:
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    def _fire(self, task: Callable[[], Awaitable[None]]) -> None:
        self._handle = None
        self._running = asyncio.ensure_future(task())
        self._running.add_done_callback(self._on_done)

    def _on_done(self, fut: asyncio.Future[None]) -> None:
        if fut is self._running:
            self._running = None
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            logger.error("%s failed", self.name, exc_info=exc)

    async def wait_idle(self) -> None:
        """Wait until nothing is armed and the last fired task has finished."""
        while True:
            if self._handle is not None:
                await asyncio.sleep(0.01)
                continue
            running = self._running
            if running is None or running.done():
                return
            await asyncio.wait({running})
