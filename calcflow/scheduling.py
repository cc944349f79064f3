"""
Deferred work for propagation and debounced recalculation
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Hashable, Set


logger = logging.getLogger(__name__)


class Scheduler:
    """Tracks every task and timer the graph and calculators create.

    Tasks start after the current synchronous turn, like microtasks. Debounce
    timers are keyed: scheduling a key again replaces its pending timer.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()
        self._timers: Dict[Hashable, asyncio.TimerHandle] = {}

    def schedule(self, coro: Awaitable[Any]) -> asyncio.Task:
        """Run a coroutine as a tracked task on the running loop."""
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._guarded(coro))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guarded(self, coro: Awaitable[Any]) -> Any:
        try:
            return await coro
        except Exception:
            logger.exception("Scheduled callback failed")
            return None

    def debounce(self, key: Hashable, delay: float, factory: Callable[[], Awaitable[Any]]):
        """Run ``factory()`` once ``delay`` seconds pass without another call for ``key``."""
        loop = asyncio.get_running_loop()
        self.cancel(key)

        def fire():
            self._timers.pop(key, None)
            self.schedule(factory())

        self._timers[key] = loop.call_later(delay, fire)

    def cancel(self, key: Hashable) -> bool:
        """Cancel the pending timer for a key."""
        handle = self._timers.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self):
        """Drop every pending timer; running tasks are left to finish."""
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    @property
    def pending(self) -> bool:
        return bool(self._tasks or self._timers)

    async def settle(self):
        """Wait until no task or timer remains, including ones created meanwhile."""
        loop = asyncio.get_running_loop()
        while self._tasks or self._timers:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            else:
                deadline = min(handle.when() for handle in self._timers.values())
                await asyncio.sleep(max(0.0, deadline - loop.time()))


__all__ = ['Scheduler']
