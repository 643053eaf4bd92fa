# assetdag/singleflight.py
"""
Per-key deduplication of concurrent async work.

The first caller for a key starts the work as a task; callers arriving while
it runs attach to the same task and receive the same result or exception.
The slot is cleared when the task finishes, so a later call starts fresh
work (this is how failed resolutions get retried).

A caller that is cancelled only detaches itself. The shared task is
cancelled once its last waiter has detached.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _Call(Generic[T]):
    task: "asyncio.Task[T]"
    waiters: int = 0


class SingleFlight(Generic[T]):
    """
    In-flight operation table keyed by string.

    Usage:
        flights = SingleFlight()
        result = await flights.do("style.css", lambda: resolve("style.css"))
    """

    def __init__(self):
        self._calls: Dict[str, _Call[T]] = {}
        self.started = 0

    def in_flight(self, key: str) -> bool:
        return key in self._calls

    def keys(self) -> List[str]:
        return sorted(self._calls)

    async def do(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run `fn` for `key`, or attach to the run already in flight."""
        call = self._calls.get(key)
        if call is None:
            call = _Call(task=asyncio.ensure_future(fn()))
            self._calls[key] = call
            self.started += 1
            call.task.add_done_callback(lambda _t, k=key, c=call: self._forget(k, c))
            logger.debug(f"Started flight for {key}")
        else:
            logger.debug(f"Attached to flight for {key}")

        call.waiters += 1
        try:
            return await asyncio.shield(call.task)
        finally:
            call.waiters -= 1
            if call.waiters == 0 and not call.task.done():
                logger.debug(f"All waiters detached from {key}, cancelling")
                self._forget(key, call)
                call.task.cancel()

    def _forget(self, key: str, call: _Call[T]):
        if self._calls.get(key) is call:
            del self._calls[key]
